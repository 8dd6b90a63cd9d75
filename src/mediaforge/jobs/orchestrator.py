"""Orchestration API: the boundary the CLI and HTTP server call.

All methods must be called from the event loop that runs the jobs.
Control operations (pause, resume, cancel, remove) are synchronous and
return immediately; the executor applies their effect.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from mediaforge.config.models import JobsConfig, MediaForgeConfig, ToolPathsConfig
from mediaforge.domain.enums import JobKind, TaskStatus
from mediaforge.domain.models import TaskRecord, TaskSnapshot
from mediaforge.jobs.exceptions import (
    TaskNotFoundError,
    TaskStateError,
    UnsupportedOperationError,
)
from mediaforge.jobs.executor import JobExecutor
from mediaforge.jobs.handles import HandleTable, TaskHandle
from mediaforge.jobs.kinds import MediaJob, build_job
from mediaforge.jobs.limiter import ConcurrencyLimiter
from mediaforge.jobs.notify import (
    CoalescingNotifier,
    CompositeNotifier,
    LoggingNotifier,
    TaskNotifier,
    safe_notify,
)
from mediaforge.jobs.process import resume as resume_process
from mediaforge.jobs.process import suspend as suspend_process
from mediaforge.jobs.registry import TaskRegistry
from mediaforge.jobs.requests import JobSpec, parse_job_spec

logger = logging.getLogger(__name__)

# Extra time shutdown allows beyond the cancel grace period
_SHUTDOWN_SLACK_SECONDS = 5.0


class Orchestrator:
    """Owns the registry, handle table, limiters and executor.

    Example:
        async with Orchestrator(JobsConfig()) as orchestrator:
            [task_id] = await orchestrator.submit([FetchRequest(url=url)])
            snapshot = await orchestrator.wait(task_id)
    """

    def __init__(
        self,
        config: JobsConfig | None = None,
        *,
        tool_paths: ToolPathsConfig | None = None,
        download_dir: Path | None = None,
        notifier: TaskNotifier | None = None,
    ) -> None:
        self.config = config or JobsConfig()
        self.tool_paths = tool_paths
        self.download_dir = download_dir or Path.home() / "Downloads"
        self.registry = TaskRegistry()
        self.handles = HandleTable()
        self.limiters = {
            JobKind.FETCH: ConcurrencyLimiter(self.config.fetch_concurrency, "fetch"),
            JobKind.TRANSCODE: ConcurrencyLimiter(
                self.config.transcode_concurrency, "transcode"
            ),
        }

        self.notifier = CompositeNotifier([LoggingNotifier()])
        if notifier is not None:
            self.add_notifier(notifier)

        self.executor = JobExecutor(
            self.registry,
            self.handles,
            self.limiters,
            self.config,
            tool_paths=tool_paths,
            notifier=self.notifier,
        )
        self._closed = False

    @classmethod
    def from_config(
        cls, config: MediaForgeConfig, notifier: TaskNotifier | None = None
    ) -> Orchestrator:
        return cls(
            config.jobs,
            tool_paths=config.tools,
            download_dir=config.download_dir,
            notifier=notifier,
        )

    def add_notifier(self, notifier: TaskNotifier) -> None:
        """Subscribe another notifier to task changes.

        Progress-only updates reaching it are rate-limited to
        ``notify_interval_seconds`` per task.
        """
        if self.config.notify_interval_seconds > 0:
            notifier = CoalescingNotifier(notifier, self.config.notify_interval_seconds)
        self.notifier.notifiers.append(notifier)

    @property
    def is_closed(self) -> bool:
        """True once shutdown has started."""
        return self._closed

    async def __aenter__(self) -> Orchestrator:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    # Submission

    async def submit(
        self, specs: Iterable[JobSpec | Mapping[str, Any]]
    ) -> list[str]:
        """Register jobs and start their executors.

        Every spec is validated before any task is created; one invalid
        spec rejects the whole batch.

        Args:
            specs: Request models, or dicts with a ``kind`` key.

        Returns:
            Task ids in submission order.

        Raises:
            ValidationError: If any spec is invalid.
            RuntimeError: If the orchestrator has been shut down.
        """
        if self._closed:
            raise RuntimeError("Orchestrator is shut down")

        jobs: list[MediaJob] = []
        for spec in specs:
            if isinstance(spec, Mapping):
                spec = parse_job_spec(dict(spec))
            jobs.append(build_job(spec, self.config, self.download_dir))

        task_ids = []
        for job in jobs:
            task_id = self.registry.create(job.kind, job.display_name)
            handle = TaskHandle(task_id=task_id, job=job)
            self.handles.insert(handle)
            snapshot = self.registry.get(task_id)
            if snapshot is not None:
                safe_notify(self.notifier, snapshot)
            handle.task = asyncio.create_task(
                self.executor.run(handle), name=f"mediaforge-{task_id[:8]}"
            )
            task_ids.append(task_id)
            logger.info(
                "Queued %s task %s: %s", job.kind.value, task_id, job.display_name
            )
        return task_ids

    # Queries

    def get_task(self, task_id: str) -> TaskSnapshot | None:
        return self.registry.get(task_id)

    def list_tasks(self) -> list[TaskSnapshot]:
        """Return all tasks, oldest first."""
        return sorted(self.registry.list(), key=lambda s: s.created_at)

    def _require(self, task_id: str, operation: str) -> TaskSnapshot:
        snapshot = self.registry.get(task_id)
        if snapshot is None:
            raise TaskNotFoundError(task_id, operation)
        return snapshot

    # Control

    def cancel(self, task_id: str) -> TaskSnapshot:
        """Request cancellation. Idempotent; a no-op for terminal tasks.

        Raises:
            TaskNotFoundError: If the task does not exist.
        """
        snapshot = self._require(task_id, "cancel")
        handle = self.handles.get(task_id)
        if handle is None or snapshot.is_terminal:
            return snapshot
        if not handle.cancel_event.is_set():
            logger.info("Cancel requested for task %s", task_id)
            handle.cancel_event.set()
        return snapshot

    def _pausable_handle(self, task_id: str, operation: str) -> TaskHandle:
        snapshot = self._require(task_id, operation)
        if snapshot.kind is not JobKind.FETCH:
            raise UnsupportedOperationError(task_id, operation, snapshot.kind.value)
        if snapshot.is_terminal:
            raise TaskStateError(
                task_id,
                f"Cannot {operation} task {task_id}: already {snapshot.status.value}",
            )
        handle = self.handles.get(task_id)
        if handle is None:
            raise TaskStateError(
                task_id, f"Cannot {operation} task {task_id}: not running"
            )
        if not handle.is_running:
            raise TaskStateError(
                task_id, f"Cannot {operation} task {task_id}: no running process"
            )
        return handle

    def pause(self, task_id: str) -> TaskSnapshot:
        """Suspend a running fetch.

        Raises:
            TaskNotFoundError: Unknown task.
            UnsupportedOperationError: Not a fetch task.
            TaskStateError: The task has no running process.
        """
        handle = self._pausable_handle(task_id, "pause")
        if handle.paused:
            return self._require(task_id, "pause")

        def mark_paused(record: TaskRecord) -> None:
            record.status = TaskStatus.PAUSED
            record.speed = None
            record.eta = None

        snapshot = self.registry.update(task_id, mark_paused)
        assert handle.process is not None
        suspend_process(handle.process)
        handle.paused = True
        logger.info("Paused task %s", task_id)
        if snapshot is not None:
            safe_notify(self.notifier, snapshot)
        return snapshot or self._require(task_id, "pause")

    def resume(self, task_id: str) -> TaskSnapshot:
        """Continue a paused fetch.

        Raises:
            TaskNotFoundError: Unknown task.
            UnsupportedOperationError: Not a fetch task.
            TaskStateError: The task has no running process.
        """
        handle = self._pausable_handle(task_id, "resume")
        if not handle.paused:
            return self._require(task_id, "resume")

        assert handle.process is not None
        resume_process(handle.process)
        handle.paused = False
        snapshot = self.registry.update(
            task_id, lambda r: setattr(r, "status", TaskStatus.DOWNLOADING)
        )
        logger.info("Resumed task %s", task_id)
        if snapshot is not None:
            safe_notify(self.notifier, snapshot)
        return snapshot or self._require(task_id, "resume")

    def remove(self, task_id: str) -> None:
        """Delete a terminal task.

        Raises:
            TaskNotFoundError: Unknown task.
            TaskStateError: The task is still active.
        """
        snapshot = self._require(task_id, "remove")
        if not snapshot.is_terminal:
            raise TaskStateError(
                task_id,
                f"Cannot remove task {task_id} while {snapshot.status.value}; "
                "cancel it first",
            )
        self.registry.remove(task_id)
        logger.debug("Removed task %s", task_id)

    # Waiting and lifecycle

    async def wait(self, task_id: str, timeout: float | None = None) -> TaskSnapshot:
        """Wait until a task is terminal and return its final snapshot.

        Raises:
            TaskNotFoundError: Unknown task.
            asyncio.TimeoutError: The task did not finish within ``timeout``.
        """
        self._require(task_id, "wait for")
        handle = self.handles.get(task_id)
        if handle is not None and handle.task is not None:
            await asyncio.wait_for(asyncio.shield(handle.task), timeout=timeout)
        return self._require(task_id, "wait for")

    async def join(self) -> list[TaskSnapshot]:
        """Wait for every submitted job to finish."""
        while True:
            tasks = [h.task for h in self.handles.all() if h.task is not None]
            if not tasks:
                break
            await asyncio.gather(*tasks, return_exceptions=True)
        return self.list_tasks()

    async def shutdown(self, timeout: float | None = None) -> None:
        """Cancel every active job, wait for executors and clear all tasks."""
        if self._closed:
            return
        self._closed = True

        handles = self.handles.all()
        if handles:
            logger.info("Shutting down: cancelling %d active job(s)", len(handles))
        for handle in handles:
            handle.cancel_event.set()

        tasks = [h.task for h in handles if h.task is not None]
        if tasks:
            if timeout is None:
                timeout = self.config.cancel_grace_seconds + _SHUTDOWN_SLACK_SECONDS
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("Force-stopped %d job(s) at shutdown", len(pending))
                await asyncio.gather(*pending, return_exceptions=True)

        self.registry.clear()

    def stats(self) -> dict[str, Any]:
        """Limiter usage and task counts per family, for health reporting."""
        result: dict[str, Any] = {}
        for kind, limiter in self.limiters.items():
            counts = self.registry.count_by_status(kind)
            result[kind.value] = {
                **limiter.stats(),
                "tasks": {
                    status.value: n for status, n in counts.items() if n
                },
            }
        return result
