"""Structured logging module for MediaForge.

Provides configurable logging with JSON format support and file rotation,
plus per-task context tagging for concurrent jobs.
"""

from mediaforge.logging.config import configure_logging
from mediaforge.logging.context import (
    TaskContextFilter,
    clear_task_context,
    get_task_context,
    set_task_context,
    task_context,
)
from mediaforge.logging.handlers import JSONFormatter

__all__ = [
    "JSONFormatter",
    "TaskContextFilter",
    "clear_task_context",
    "configure_logging",
    "get_task_context",
    "set_task_context",
    "task_context",
]
