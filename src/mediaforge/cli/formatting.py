"""Task display utilities for consistent formatting in CLI output.

These are CLI-specific and should not be used in server code.
"""

from mediaforge.core.formatting import format_progress, truncate_name
from mediaforge.domain.enums import TaskStatus
from mediaforge.domain.models import TaskSnapshot

# Map TaskStatus to terminal color names (for click.style and similar)
TASK_STATUS_COLORS: dict[TaskStatus, str] = {
    TaskStatus.QUEUED: "yellow",
    TaskStatus.DOWNLOADING: "blue",
    TaskStatus.PROCESSING: "blue",
    TaskStatus.PAUSED: "magenta",
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
    TaskStatus.CANCELLED: "bright_black",
}

# Default color when status is not found
DEFAULT_STATUS_COLOR = "white"


def get_status_color(status: TaskStatus) -> str:
    """Get the terminal color for a task status."""
    return TASK_STATUS_COLORS.get(status, DEFAULT_STATUS_COLOR)


def format_task_row(snapshot: TaskSnapshot) -> tuple[str, str, str, str, str]:
    """Format a task for summary display.

    Returns:
        Tuple of (task_id, status_value, status_color, name, detail). The
        detail is the output path on success and the error otherwise.
    """
    if snapshot.status is TaskStatus.COMPLETED:
        detail = snapshot.output_path or ""
    elif snapshot.is_terminal:
        detail = snapshot.error or ""
    else:
        detail = format_progress(snapshot.progress).strip()
    return (
        snapshot.id[:8],
        snapshot.status.value,
        get_status_color(snapshot.status),
        truncate_name(snapshot.name, 40),
        detail,
    )
