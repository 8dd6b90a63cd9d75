"""Domain enums for MediaForge.

This module contains the task lifecycle and job family enums shared by the
job engine, the HTTP API and the CLI.
"""

from enum import Enum


class JobKind(Enum):
    """Family of external tool a job drives.

    Each family has its own concurrency pool, timeout and retry policy.
    """

    FETCH = "fetch"  # Network source via yt-dlp
    TRANSCODE = "transcode"  # Local file via ffmpeg


class TaskStatus(Enum):
    """Lifecycle state of a task.

    Queued -> Downloading | Processing -> Paused | Completed | Failed | Cancelled.
    Paused may return to Downloading. Queued may go straight to Cancelled or
    Failed when a job is cancelled or rejected before admission.
    """

    QUEUED = "queued"
    DOWNLOADING = "downloading"
    PROCESSING = "processing"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """True for Completed, Failed and Cancelled."""
        return self in _TERMINAL

    @property
    def is_active(self) -> bool:
        """True while a process is (or is about to be) running."""
        return self in (TaskStatus.DOWNLOADING, TaskStatus.PROCESSING)

    @classmethod
    def active_for(cls, kind: JobKind) -> "TaskStatus":
        """Return the in-progress status used by a job family."""
        if kind is JobKind.FETCH:
            return cls.DOWNLOADING
        return cls.PROCESSING


_TERMINAL = frozenset(
    (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)
)

# Allowed status transitions. Terminal states have no outgoing edges.
ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.QUEUED: frozenset(
        (
            TaskStatus.DOWNLOADING,
            TaskStatus.PROCESSING,
            TaskStatus.CANCELLED,
            TaskStatus.FAILED,
        )
    ),
    TaskStatus.DOWNLOADING: frozenset(
        (
            TaskStatus.PAUSED,
            TaskStatus.COMPLETED,
            TaskStatus.FAILED,
            TaskStatus.CANCELLED,
        )
    ),
    TaskStatus.PROCESSING: frozenset(
        (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)
    ),
    TaskStatus.PAUSED: frozenset(
        (
            TaskStatus.DOWNLOADING,
            TaskStatus.COMPLETED,
            TaskStatus.FAILED,
            TaskStatus.CANCELLED,
        )
    ),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


def is_transition_allowed(current: TaskStatus, new: TaskStatus) -> bool:
    """Check whether a task may move from ``current`` to ``new``.

    Setting the same status again is always allowed.
    """
    if current is new:
        return True
    return new in ALLOWED_TRANSITIONS[current]
