"""Task registry: the single owner of task state.

Records are mutated only through ``TaskRegistry.update``, which applies a
mutator under a per-task lock. Updates to different tasks never contend;
updates to the same task are totally ordered. A small structural lock
guards only insertion and removal of keys.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable

from mediaforge.domain.enums import JobKind, TaskStatus, is_transition_allowed
from mediaforge.domain.models import TaskRecord, TaskSnapshot, utc_now_iso
from mediaforge.jobs.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)

Mutator = Callable[[TaskRecord], None]


class TaskRegistry:
    """Concurrent key -> record store holding task state.

    Thread-safe. Readers always receive immutable TaskSnapshot copies.
    """

    def __init__(self) -> None:
        self._records: dict[str, TaskRecord] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._structure_lock = threading.Lock()

    def create(self, kind: JobKind, name: str) -> str:
        """Insert a new Queued task and return its id."""
        task_id = str(uuid.uuid4())
        record = TaskRecord(id=task_id, kind=kind, name=name)
        with self._structure_lock:
            self._records[task_id] = record
            self._locks[task_id] = threading.Lock()
        logger.debug("Created %s task %s (%s)", kind.value, task_id, name)
        return task_id

    def _lock_for(self, task_id: str) -> threading.Lock | None:
        with self._structure_lock:
            return self._locks.get(task_id)

    def update(self, task_id: str, mutator: Mutator) -> TaskSnapshot | None:
        """Atomically apply ``mutator`` to a task.

        The mutator works on a copy; the copy replaces the stored record
        only if the resulting status change is allowed. Terminal records
        are never modified.

        Args:
            task_id: Task to update.
            mutator: Callable that changes the record in place.

        Returns:
            Snapshot after the update, or None if the task does not exist.

        Raises:
            InvalidTransitionError: If the mutator attempts a forbidden
                status change. The stored record is left unchanged.
        """
        lock = self._lock_for(task_id)
        if lock is None:
            return None
        with lock:
            record = self._records.get(task_id)
            if record is None:
                return None
            if record.status.is_terminal:
                return record.snapshot()

            working = record.copy()
            mutator(working)

            if working.id != record.id or working.kind is not record.kind:
                raise ValueError("Task id and kind are immutable")
            if not is_transition_allowed(record.status, working.status):
                raise InvalidTransitionError(
                    task_id, record.status.value, working.status.value
                )

            working.updated_at = utc_now_iso()
            if working.status.is_terminal and working.completed_at is None:
                working.completed_at = working.updated_at
            self._records[task_id] = working
            return working.snapshot()

    def get(self, task_id: str) -> TaskSnapshot | None:
        """Return a snapshot of the task, or None if unknown."""
        lock = self._lock_for(task_id)
        if lock is None:
            return None
        with lock:
            record = self._records.get(task_id)
            return record.snapshot() if record is not None else None

    def list(self) -> list[TaskSnapshot]:
        """Return snapshots of all tasks, in no particular order."""
        with self._structure_lock:
            task_ids = list(self._records)
        snapshots = []
        for task_id in task_ids:
            snapshot = self.get(task_id)
            if snapshot is not None:
                snapshots.append(snapshot)
        return snapshots

    def remove(self, task_id: str) -> bool:
        """Remove a task. Idempotent; returns True if something was removed."""
        lock = self._lock_for(task_id)
        if lock is None:
            return False
        with lock:
            with self._structure_lock:
                removed = self._records.pop(task_id, None) is not None
                self._locks.pop(task_id, None)
        return removed

    def clear(self) -> None:
        """Drop every task."""
        with self._structure_lock:
            self._records.clear()
            self._locks.clear()

    def count_by_status(self, kind: JobKind | None = None) -> dict[TaskStatus, int]:
        """Count tasks per status, optionally for one job family."""
        counts: dict[TaskStatus, int] = {status: 0 for status in TaskStatus}
        for snapshot in self.list():
            if kind is None or snapshot.kind is kind:
                counts[snapshot.status] += 1
        return counts

    def __len__(self) -> int:
        with self._structure_lock:
            return len(self._records)

    def __contains__(self, task_id: object) -> bool:
        with self._structure_lock:
            return task_id in self._records
