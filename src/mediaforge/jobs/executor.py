"""Job executor: drives one task from Queued to a terminal state.

Per job:

1. Pre-flight checks (tool binary, output directory, free space).
2. Wait for a permit from the job family's limiter.
3. Spawn the tool, feed its output through the progress parser and race
   process exit against cancellation and the job deadline.
4. Retry failed fetch attempts after a backoff, within the deadline.
5. Release the permit, drop the handle and record the terminal state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from mediaforge.core.formatting import format_elapsed
from mediaforge.domain.enums import JobKind, TaskStatus
from mediaforge.domain.models import TaskRecord, TaskSnapshot
from mediaforge.jobs.exceptions import (
    InvalidTransitionError,
    JobCancelledError,
    JobRuntimeError,
    JobTimeoutError,
    MediaForgeError,
)
from mediaforge.jobs.notify import NullNotifier, TaskNotifier, safe_notify
from mediaforge.jobs.preflight import run_preflight
from mediaforge.jobs.process import (
    force_kill,
    iter_lines,
    spawn,
    terminate_gracefully,
)
from mediaforge.logging.context import task_context
from mediaforge.tools.models import ProgressUpdate
from mediaforge.tools.progress import MonotonicProgress, ProgressParser

if TYPE_CHECKING:
    from mediaforge.config.models import JobsConfig, ToolPathsConfig
    from mediaforge.jobs.handles import HandleTable, TaskHandle
    from mediaforge.jobs.limiter import ConcurrencyLimiter
    from mediaforge.jobs.registry import TaskRegistry

logger = logging.getLogger(__name__)

# Lines of stderr kept for error messages
STDERR_TAIL_LINES = 20


@dataclass(frozen=True)
class Outcome:
    """How a job ended."""

    status: TaskStatus
    error: str | None = None
    output_path: str | None = None


class JobExecutor:
    """Runs jobs against a shared registry, handle table and limiters."""

    def __init__(
        self,
        registry: TaskRegistry,
        handles: HandleTable,
        limiters: dict[JobKind, ConcurrencyLimiter],
        config: JobsConfig,
        tool_paths: ToolPathsConfig | None = None,
        notifier: TaskNotifier | None = None,
    ) -> None:
        self.registry = registry
        self.handles = handles
        self.limiters = limiters
        self.config = config
        self.tool_paths = tool_paths
        self.notifier = notifier or NullNotifier()

    async def run(self, handle: TaskHandle) -> TaskSnapshot | None:
        """Drive ``handle``'s job to completion.

        Never raises for job failures; those become task state. Task
        cancellation (orchestrator shutdown) marks the task Cancelled and
        propagates.

        Returns:
            Final snapshot, or None if the task was removed meanwhile.
        """
        job = handle.job
        with task_context(handle.task_id, job.kind.value):
            start = time.monotonic()
            try:
                outcome = await self._drive(handle)
            except asyncio.CancelledError:
                _cleanup(handle)
                self._finish(
                    handle,
                    Outcome(TaskStatus.CANCELLED, "Cancelled: engine shutting down"),
                )
                raise
            except Exception as e:
                logger.exception("Executor fault for %s", job.display_name)
                _cleanup(handle)
                outcome = Outcome(TaskStatus.FAILED, f"Internal error: {e}")

            snapshot = self._finish(handle, outcome)
            logger.info(
                "%s %s after %s",
                job.display_name,
                outcome.status.value,
                format_elapsed(time.monotonic() - start),
            )
            return snapshot

    async def _drive(self, handle: TaskHandle) -> Outcome:
        job = handle.job
        try:
            binary = await asyncio.to_thread(
                run_preflight, job, self.tool_paths, self.config.min_free_space_mb
            )
        except MediaForgeError as e:
            logger.warning("Pre-flight failed: %s", e)
            return Outcome(TaskStatus.FAILED, str(e))

        limiter = self.limiters[job.kind]
        async with limiter.permit(handle.cancel_event) as acquired:
            if not acquired:
                logger.info("Cancelled while queued")
                return Outcome(TaskStatus.CANCELLED, str(JobCancelledError()))

            deadline = asyncio.get_running_loop().time() + job.policy.timeout
            return await self._attempts(handle, binary, deadline)

    async def _attempts(
        self, handle: TaskHandle, binary: Path, deadline: float
    ) -> Outcome:
        job = handle.job
        policy = job.policy
        active = TaskStatus.active_for(job.kind)

        for attempt in range(1, policy.max_attempts + 1):

            def start_attempt(record: TaskRecord, attempt: int = attempt) -> None:
                record.status = active
                record.attempt = attempt

            self._update(handle.task_id, start_attempt)

            try:
                await self._run_attempt(handle, binary, deadline)
            except (JobCancelledError, JobTimeoutError) as e:
                job.cleanup()
                status = (
                    TaskStatus.CANCELLED
                    if isinstance(e, JobCancelledError)
                    else TaskStatus.FAILED
                )
                return Outcome(status, str(e))
            except JobRuntimeError as e:
                if attempt >= policy.max_attempts:
                    logger.error(
                        "Attempt %d/%d failed: %s", attempt, policy.max_attempts, e
                    )
                    job.cleanup()
                    return Outcome(TaskStatus.FAILED, str(e))

                logger.warning(
                    "Attempt %d/%d failed, retrying in %gs: %s",
                    attempt,
                    policy.max_attempts,
                    policy.backoff,
                    e,
                )
                marker = f"retry {attempt}/{policy.max_attempts}"
                self._update(handle.task_id, lambda r: setattr(r, "error", marker))
                try:
                    await self._backoff(handle, deadline, policy.backoff)
                except (JobCancelledError, JobTimeoutError) as e:
                    job.cleanup()
                    status = (
                        TaskStatus.CANCELLED
                        if isinstance(e, JobCancelledError)
                        else TaskStatus.FAILED
                    )
                    return Outcome(status, str(e))
                continue
            except MediaForgeError as e:
                # SpawnError / ResourceError: terminal
                logger.error("%s", e)
                job.cleanup()
                return Outcome(TaskStatus.FAILED, str(e))

            try:
                output_path = job.finalize()
            except (JobRuntimeError, OSError) as e:
                logger.error("Could not finalize output: %s", e)
                job.cleanup()
                return Outcome(TaskStatus.FAILED, str(e))
            return Outcome(TaskStatus.COMPLETED, output_path=output_path)

        # max_attempts >= 1, so the loop always returns
        raise AssertionError("unreachable")

    async def _run_attempt(
        self, handle: TaskHandle, binary: Path, deadline: float
    ) -> None:
        """Run one process to its end.

        Raises:
            JobCancelledError: The cancel event fired.
            JobTimeoutError: The job deadline passed.
            JobRuntimeError: Nonzero exit (ResourceError for a full disk).
            SpawnError: The tool could not be started.
        """
        job = handle.job
        loop = asyncio.get_running_loop()
        if handle.cancel_event.is_set():
            raise JobCancelledError()
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise JobTimeoutError(job.policy.timeout)

        process = await spawn(job.build_argv(binary))
        handle.process = process

        parser = job.create_parser()
        guard = MonotonicProgress()
        tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        readers = [
            asyncio.create_task(self._pump(handle, process.stdout, parser, guard)),
            asyncio.create_task(
                self._pump(handle, process.stderr, parser, guard, tail)
            ),
        ]
        wait_task = asyncio.create_task(process.wait())
        cancel_task = asyncio.create_task(handle.cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {wait_task, cancel_task},
                timeout=remaining,
                return_when=asyncio.FIRST_COMPLETED,
            )

            # Exit wins over a cancel that arrived in the same iteration
            if wait_task in done:
                returncode = wait_task.result()
                await self._drain(readers)
                if returncode != 0:
                    raise job.classify_failure(returncode, list(tail))
                return

            if cancel_task in done:
                logger.info("Cancelling %s (pid %d)", job.tool, process.pid)
                await terminate_gracefully(process, self.config.cancel_grace_seconds)
                raise JobCancelledError()

            logger.warning(
                "%s exceeded %gs deadline, killing", job.tool, job.policy.timeout
            )
            await force_kill(process)
            raise JobTimeoutError(job.policy.timeout)
        finally:
            for task in (wait_task, cancel_task, *readers):
                if not task.done():
                    task.cancel()
            if process.returncode is None:
                await force_kill(process)
            handle.process = None
            handle.paused = False

    async def _drain(self, readers: list[asyncio.Task]) -> None:
        results = await asyncio.gather(*readers, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Output reader failed: %s", result)

    async def _pump(
        self,
        handle: TaskHandle,
        stream: asyncio.StreamReader | None,
        parser: ProgressParser,
        guard: MonotonicProgress,
        tail: deque[str] | None = None,
    ) -> None:
        if stream is None:
            return
        async for line in iter_lines(stream):
            if tail is not None:
                tail.append(line)
            update = parser.feed(line)
            if update is None or update.is_empty:
                continue
            update = guard.accept(update)
            if update is not None:
                self._apply_progress(handle, update)

    def _apply_progress(self, handle: TaskHandle, update: ProgressUpdate) -> None:
        handle.job.observe(update)

        def mutate(record: TaskRecord) -> None:
            if update.percent is not None:
                record.progress = update.percent
            elif update.indeterminate:
                record.progress = None
            if update.speed is not None:
                record.speed = update.speed
            if update.eta is not None:
                record.eta = update.eta
            if update.destination:
                record.output_path = update.destination
                record.name = Path(update.destination).name

        self._update(handle.task_id, mutate)

    async def _backoff(
        self, handle: TaskHandle, deadline: float, delay: float
    ) -> None:
        """Sleep before the next attempt unless cancelled or out of time."""
        loop = asyncio.get_running_loop()
        delay = max(0.0, min(delay, deadline - loop.time()))
        try:
            await asyncio.wait_for(handle.cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            if loop.time() >= deadline:
                raise JobTimeoutError(handle.job.policy.timeout) from None
            return
        raise JobCancelledError()

    def _finish(self, handle: TaskHandle, outcome: Outcome) -> TaskSnapshot | None:
        """Drop the handle, then record and publish the terminal state."""
        self.handles.remove(handle.task_id)

        def mutate(record: TaskRecord) -> None:
            record.status = outcome.status
            record.speed = None
            record.eta = None
            if outcome.status is TaskStatus.COMPLETED:
                record.progress = 100.0
                record.error = None
                if outcome.output_path:
                    record.output_path = outcome.output_path
                    record.name = Path(outcome.output_path).name
            else:
                record.error = outcome.error

        return self._update(handle.task_id, mutate)

    def _update(
        self, task_id: str, mutator: Callable[[TaskRecord], None]
    ) -> TaskSnapshot | None:
        try:
            snapshot = self.registry.update(task_id, mutator)
        except InvalidTransitionError as e:
            logger.warning("%s", e)
            return self.registry.get(task_id)
        if snapshot is not None:
            safe_notify(self.notifier, snapshot)
        return snapshot


def _cleanup(handle: TaskHandle) -> None:
    try:
        handle.job.cleanup()
    except Exception:
        logger.exception("Cleanup failed for %s", handle.job.display_name)
