"""Domain models for MediaForge.

TaskRecord is the mutable state owned by the task registry; every reader
outside the registry receives an immutable TaskSnapshot copy.
"""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from .enums import JobKind, TaskStatus


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class TaskSnapshot:
    """Immutable point-in-time view of a task."""

    id: str
    kind: JobKind
    name: str
    status: TaskStatus
    progress: float | None = 0.0  # None = indeterminate
    speed: str | None = None
    eta: str | None = None
    error: str | None = None
    output_path: str | None = None
    attempt: int = 0
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    completed_at: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["kind"] = self.kind.value
        data["status"] = self.status.value
        return data


@dataclass
class TaskRecord:
    """Mutable task state.

    Only the task registry holds instances of this class. Mutators passed to
    ``TaskRegistry.update`` receive the record and change it in place.
    """

    id: str
    kind: JobKind
    name: str
    status: TaskStatus = TaskStatus.QUEUED
    progress: float | None = 0.0
    speed: str | None = None
    eta: str | None = None
    error: str | None = None
    output_path: str | None = None
    attempt: int = 0
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    completed_at: str | None = None

    def snapshot(self) -> TaskSnapshot:
        """Return an immutable copy of the current state."""
        return TaskSnapshot(
            id=self.id,
            kind=self.kind,
            name=self.name,
            status=self.status,
            progress=self.progress,
            speed=self.speed,
            eta=self.eta,
            error=self.error,
            output_path=self.output_path,
            attempt=self.attempt,
            created_at=self.created_at,
            updated_at=self.updated_at,
            completed_at=self.completed_at,
        )

    def copy(self) -> "TaskRecord":
        return replace(self)
