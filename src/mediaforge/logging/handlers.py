"""JSON log output for MediaForge.

One JSON object per line, suitable for journald or a log shipper. Lines
emitted while an executor drives a job carry a ``task`` object naming it.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

# Attributes every LogRecord has; anything else came from ``extra=``
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}

# Set by TaskContextFilter
_TASK_ATTRS = frozenset(("task_id", "task_kind", "task_tag"))


class JSONFormatter(logging.Formatter):
    """Format log records as JSON objects.

    Keys:
    - timestamp: ISO-8601 UTC
    - level, logger, message
    - task: ``{"id", "kind"}`` when logged inside a job
    - context: remaining ``extra`` attributes, if any
    - exception: formatted traceback, if any
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        if record.name != "root":
            entry["logger"] = record.name

        task_id = getattr(record, "task_id", None)
        if task_id:
            entry["task"] = {
                "id": task_id,
                "kind": getattr(record, "task_kind", None),
            }

        context = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS
            and key not in _TASK_ATTRS
            and not key.startswith("_")
            and value is not None
        }
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)
