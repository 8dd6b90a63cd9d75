"""Server lifecycle state.

Tracks uptime and whether a graceful shutdown is in progress.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class ServerLifecycle:
    """Manages server startup and shutdown state."""

    shutdown_timeout: float = 30.0
    """Seconds to wait for active jobs before force-stopping them."""

    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    """UTC timestamp when the server started."""

    shutdown_initiated: datetime | None = None
    """UTC timestamp when shutdown began, None while running."""

    @property
    def uptime_seconds(self) -> float:
        """Returns seconds since server startup."""
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()

    @property
    def is_shutting_down(self) -> bool:
        return self.shutdown_initiated is not None

    def initiate_shutdown(self) -> None:
        """Begin graceful shutdown. Idempotent."""
        if self.shutdown_initiated is None:
            self.shutdown_initiated = datetime.now(timezone.utc)
