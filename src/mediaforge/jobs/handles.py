"""Handle table for in-flight jobs.

A TaskHandle pairs the asyncio task running a job's executor with its
cancellation event and, once spawned, the live process. Entries are
inserted at submit time and removed exactly once when the job ends.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mediaforge.jobs.kinds import MediaJob


@dataclass
class TaskHandle:
    """Execution handle plus cancellation control for one active task."""

    task_id: str
    job: MediaJob
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task | None = None
    process: asyncio.subprocess.Process | None = None
    paused: bool = False

    @property
    def is_running(self) -> bool:
        """True while a spawned process is alive."""
        return self.process is not None and self.process.returncode is None


class HandleTable:
    """Single-owner map of task id -> TaskHandle."""

    def __init__(self) -> None:
        self._handles: dict[str, TaskHandle] = {}
        self._lock = threading.Lock()

    def insert(self, handle: TaskHandle) -> None:
        """Register a handle.

        Raises:
            KeyError: If a handle for the task already exists.
        """
        with self._lock:
            if handle.task_id in self._handles:
                raise KeyError(f"Handle already registered for {handle.task_id}")
            self._handles[handle.task_id] = handle

    def get(self, task_id: str) -> TaskHandle | None:
        with self._lock:
            return self._handles.get(task_id)

    def remove(self, task_id: str) -> TaskHandle | None:
        """Remove and return a handle. Idempotent."""
        with self._lock:
            return self._handles.pop(task_id, None)

    def all(self) -> list[TaskHandle]:
        with self._lock:
            return list(self._handles.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._handles
