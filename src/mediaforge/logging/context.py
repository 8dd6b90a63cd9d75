"""Task context for structured logging.

Provides context propagation for job executors using contextvars. Each
asyncio task copies the context at creation, so a value set inside one
executor never leaks into another.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_task_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "task_id", default=None
)
_task_kind: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "task_kind", default=None
)


def set_task_context(task_id: str, task_kind: str | None = None) -> None:
    """Set the current task context.

    Args:
        task_id: Task identifier.
        task_kind: Job family ("fetch" or "transcode").
    """
    _task_id.set(task_id)
    _task_kind.set(task_kind)


def clear_task_context() -> None:
    """Clear the current task context."""
    _task_id.set(None)
    _task_kind.set(None)


@contextmanager
def task_context(
    task_id: str, task_kind: str | None = None
) -> Generator[None, None, None]:
    """Context manager for task processing context.

    Example:
        with task_context(task_id, "fetch"):
            logger.info("Spawning yt-dlp")  # Tagged with the task id
    """
    old_id = _task_id.get()
    old_kind = _task_kind.get()
    try:
        set_task_context(task_id, task_kind)
        yield
    finally:
        _task_id.set(old_id)
        _task_kind.set(old_kind)


def get_task_context() -> tuple[str | None, str | None]:
    """Return (task_id, task_kind), either may be None."""
    return _task_id.get(), _task_kind.get()


class TaskContextFilter(logging.Filter):
    """Logging filter that injects task context into log records.

    Adds task_id and task_kind attributes for JSON output and a compact
    task_tag such as ``[T1a2b3c4d] `` for the text format.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        task_id, task_kind = get_task_context()

        record.task_id = task_id
        record.task_kind = task_kind
        record.task_tag = f"[T{task_id[:8]}] " if task_id else ""

        return True  # Never filter out records
