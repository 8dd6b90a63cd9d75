"""Root logger setup for MediaForge.

Text lines look like::

    2024-08-06T10:00:00+0000 - [T1a2b3c4d] mediaforge.executors.fetch - INFO - ...

The ``[T...]`` tag only appears while a job is running.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

from mediaforge.logging.context import TaskContextFilter
from mediaforge.logging.handlers import JSONFormatter

if TYPE_CHECKING:
    from mediaforge.config.models import LoggingConfig

TEXT_FORMAT = "%(asctime)s - %(task_tag)s%(name)s - %(levelname)s - %(message)s"
TEXT_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

# aiohttp logs every request at INFO
_QUIET_LOGGERS = ("aiohttp.access",)


def _formatter_for(config: LoggingConfig) -> logging.Formatter:
    if config.format.lower() == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT)


def _open_log_file(config: LoggingConfig) -> logging.Handler | None:
    path = Path(config.file).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            path,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        # Logging is not set up yet, so report straight to stderr
        print(f"Warning: cannot write log file {path}: {e}", file=sys.stderr)
        return None


def configure_logging(config: LoggingConfig) -> None:
    """Replace the root logger's handlers according to ``config``.

    Logs go to the rotating file when one is configured, and to stderr when
    ``include_stderr`` is set, no file is configured, or the file cannot be
    opened.
    """
    level = logging.getLevelName(config.level.upper())

    handlers: list[logging.Handler] = []
    if config.file:
        file_handler = _open_log_file(config)
        if file_handler is not None:
            handlers.append(file_handler)
    if config.include_stderr or not handlers:
        handlers.append(logging.StreamHandler(sys.stderr))

    formatter = _formatter_for(config)
    context_filter = TaskContextFilter()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    for handler in handlers:
        root.addHandler(handler)

    quiet_level = max(level, logging.WARNING)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
