"""Task notification abstraction.

The engine publishes every meaningful task change through a single call,
``notify(snapshot)``. Transport is up to the implementation:

- LoggingNotifier: completion/failure lines in the log
- StderrNotifier: in-place progress line for the CLI
- SnapshotBroadcaster (server): fan-out to SSE subscribers
- NullNotifier: tests and embedding
"""

from __future__ import annotations

import logging
import sys
import threading
import time
from collections.abc import Callable, Iterable
from typing import Protocol, TextIO

from mediaforge.domain.enums import JobKind, TaskStatus
from mediaforge.domain.models import TaskSnapshot

logger = logging.getLogger(__name__)


class TaskNotifier(Protocol):
    """Receives task snapshots whenever a task changes."""

    def notify(self, snapshot: TaskSnapshot) -> None:
        """Publish a task change.

        Args:
            snapshot: Immutable state of the task after the change.
        """
        ...


def safe_notify(notifier: TaskNotifier, snapshot: TaskSnapshot) -> None:
    """Call ``notifier.notify`` and log, never raise, on failure."""
    try:
        notifier.notify(snapshot)
    except Exception:
        logger.exception("Notifier %s failed", type(notifier).__name__)


class NullNotifier:
    """Notifier that discards everything."""

    def notify(self, snapshot: TaskSnapshot) -> None:
        pass


class CompositeNotifier:
    """Forwards each snapshot to several notifiers.

    A failing member is logged and does not stop the others.
    """

    def __init__(self, notifiers: Iterable[TaskNotifier]) -> None:
        self.notifiers = list(notifiers)

    def notify(self, snapshot: TaskSnapshot) -> None:
        for notifier in self.notifiers:
            safe_notify(notifier, snapshot)


class LoggingNotifier:
    """Logs status changes at INFO and failures at WARNING."""

    def __init__(self) -> None:
        self._last_status: dict[str, TaskStatus] = {}
        self._lock = threading.Lock()

    def notify(self, snapshot: TaskSnapshot) -> None:
        with self._lock:
            previous = self._last_status.get(snapshot.id)
            if previous is snapshot.status:
                return
            if snapshot.is_terminal:
                self._last_status.pop(snapshot.id, None)
            else:
                self._last_status[snapshot.id] = snapshot.status

        noun = "Download" if snapshot.kind is JobKind.FETCH else "Conversion"
        if snapshot.status is TaskStatus.COMPLETED:
            logger.info(
                "%s complete: %s", noun, snapshot.output_path or snapshot.name
            )
        elif snapshot.status is TaskStatus.FAILED:
            logger.warning("%s failed: %s (%s)", noun, snapshot.name, snapshot.error)
        else:
            logger.info(
                "%s %s: %s", noun, snapshot.status.value, snapshot.name
            )


class CoalescingNotifier:
    """Rate-limits progress-only updates per task.

    Status changes always pass through immediately and terminal snapshots
    are never dropped. Between status changes, at most one snapshot per
    ``min_interval`` seconds is forwarded for each task.
    """

    def __init__(
        self,
        inner: TaskNotifier,
        min_interval: float = 0.25,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.inner = inner
        self.min_interval = min_interval
        self._clock = clock
        self._state: dict[str, tuple[TaskStatus, float]] = {}
        self._lock = threading.Lock()

    def notify(self, snapshot: TaskSnapshot) -> None:
        now = self._clock()
        with self._lock:
            previous = self._state.get(snapshot.id)
            if snapshot.is_terminal:
                self._state.pop(snapshot.id, None)
                forward = True
            elif previous is None or previous[0] is not snapshot.status:
                forward = True
            else:
                forward = now - previous[1] >= self.min_interval
            if forward and not snapshot.is_terminal:
                self._state[snapshot.id] = (snapshot.status, now)

        if forward:
            self.inner.notify(snapshot)


class StderrNotifier:
    """Single-line progress display for interactive CLI runs."""

    def __init__(self, stream: TextIO | None = None, enabled: bool = True) -> None:
        self.enabled = enabled
        self._stream = stream
        self._tasks: dict[str, TaskSnapshot] = {}
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    def notify(self, snapshot: TaskSnapshot) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._tasks[snapshot.id] = snapshot
            tasks = list(self._tasks.values())

        done = sum(1 for t in tasks if t.is_terminal)
        active = [t for t in tasks if t.status.is_active]
        parts = [f"{done}/{len(tasks)} done"]
        for task in active[:3]:
            percent = "--" if task.progress is None else f"{task.progress:5.1f}%"
            parts.append(f"{task.name[:30]} {percent}")
        self.stream.write("\r" + " | ".join(parts) + "\033[K")
        self.stream.flush()

    def finish(self) -> None:
        """End the progress line."""
        if self.enabled:
            self.stream.write("\n")
            self.stream.flush()
