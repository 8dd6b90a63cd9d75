"""Tests for CLI display formatting utilities."""

from mediaforge.cli.formatting import (
    DEFAULT_STATUS_COLOR,
    TASK_STATUS_COLORS,
    format_task_row,
    get_status_color,
)
from mediaforge.domain.enums import JobKind, TaskStatus
from mediaforge.domain.models import TaskSnapshot


def _snapshot(status: TaskStatus, **kwargs) -> TaskSnapshot:
    return TaskSnapshot(
        id="0123456789abcdef",
        kind=JobKind.FETCH,
        name=kwargs.pop("name", "Sample Video.mp4"),
        status=status,
        **kwargs,
    )


class TestTaskStatusColors:
    def test_contains_all_statuses(self):
        for status in TaskStatus:
            assert status in TASK_STATUS_COLORS

    def test_expected_colors(self):
        assert get_status_color(TaskStatus.COMPLETED) == "green"
        assert get_status_color(TaskStatus.FAILED) == "red"
        assert get_status_color(TaskStatus.CANCELLED) == "bright_black"

    def test_all_statuses_have_colors(self):
        for status in TaskStatus:
            assert get_status_color(status) != DEFAULT_STATUS_COLOR


class TestFormatTaskRow:
    """Tests for format_task_row function."""

    def test_completed_shows_output_path(self):
        row = format_task_row(
            _snapshot(TaskStatus.COMPLETED, output_path="/tmp/out/Sample Video.mp4")
        )
        assert row == (
            "01234567",
            "completed",
            "green",
            "Sample Video.mp4",
            "/tmp/out/Sample Video.mp4",
        )

    def test_failed_shows_error(self):
        row = format_task_row(_snapshot(TaskStatus.FAILED, error="HTTP Error 503"))
        assert row[1] == "failed"
        assert row[4] == "HTTP Error 503"

    def test_terminal_without_error(self):
        assert format_task_row(_snapshot(TaskStatus.CANCELLED))[4] == ""

    def test_active_shows_progress(self):
        row = format_task_row(_snapshot(TaskStatus.DOWNLOADING, progress=42.5))
        assert row[4] == "42.5%"

    def test_long_name_truncated(self):
        row = format_task_row(_snapshot(TaskStatus.QUEUED, name="x" * 80))
        assert len(row[3]) == 40
