"""Centralized exit codes for all CLI commands.

Exit code ranges:
    0: Success
    1-9: General errors
    10-19: Validation errors (requests, config, batch files)
    30-39: Tool/dependency errors
    40-49: Job outcome errors
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes for MediaForge CLI commands."""

    # Success (0)
    SUCCESS = 0

    # General errors (1-9)
    GENERAL_ERROR = 1
    INTERRUPTED = 2  # Ctrl+C / SIGINT

    # Validation errors (10-19)
    INVALID_REQUEST = 10
    CONFIG_ERROR = 11
    BATCH_FILE_ERROR = 12

    # Tool/dependency errors (30-39)
    TOOL_NOT_AVAILABLE = 30

    # Job outcome errors (40-49)
    JOB_FAILED = 40
    JOB_CANCELLED = 41
