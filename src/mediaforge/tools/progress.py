"""Progress parser protocol and the per-attempt monotonic guard."""

from __future__ import annotations

from typing import Protocol

from mediaforge.tools.models import ProgressUpdate


class ProgressParser(Protocol):
    """Turns tool output lines into progress updates.

    One parser instance lives for exactly one attempt. Lines that carry no
    progress information return None; malformed lines never raise.
    """

    def feed(self, line: str) -> ProgressUpdate | None:
        """Consume one output line."""
        ...


class MonotonicProgress:
    """Drops updates that would move percentage backwards.

    Create a new guard for every attempt; percentage only has to be
    non-decreasing within a single attempt.
    """

    def __init__(self) -> None:
        self._last: float | None = None

    @property
    def last(self) -> float | None:
        return self._last

    def accept(self, update: ProgressUpdate) -> ProgressUpdate | None:
        """Return the update if it keeps percentage non-decreasing, else None."""
        if update.percent is None:
            return update
        if self._last is not None and update.percent < self._last:
            return None
        self._last = update.percent
        return update
