"""Domain types shared by the job engine, the HTTP API and the CLI."""

from mediaforge.domain.enums import (
    ALLOWED_TRANSITIONS,
    JobKind,
    TaskStatus,
    is_transition_allowed,
)
from mediaforge.domain.models import TaskRecord, TaskSnapshot, utc_now_iso

__all__ = [
    "ALLOWED_TRANSITIONS",
    "JobKind",
    "TaskRecord",
    "TaskSnapshot",
    "TaskStatus",
    "is_transition_allowed",
    "utc_now_iso",
]
