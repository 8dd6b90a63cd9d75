"""Exceptions raised by the job engine.

Job-outcome errors (ValidationError through ResourceError) describe why a
task ended the way it did and are written to ``task.error``. The remaining
classes are raised to callers of the orchestration API.
"""

from __future__ import annotations

from typing import Any


class MediaForgeError(Exception):
    """Base exception for all MediaForge errors.

    All engine exceptions inherit from this class, allowing callers
    to catch every MediaForge error with a single except clause.
    """


class ValidationError(MediaForgeError):
    """Raised when a job request is rejected before any task is created.

    Attributes:
        errors: Field-level error details (pydantic style), if available.
    """

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        self.errors = errors or []
        super().__init__(message)


class SpawnError(MediaForgeError):
    """Raised when the external binary is missing or cannot be started.

    Never retried.
    """


class JobRuntimeError(MediaForgeError):
    """Raised when the external process exits with a nonzero status.

    Attributes:
        exit_code: Process return code.
        stderr_tail: Last lines of the process's stderr.
    """

    def __init__(
        self, message: str, exit_code: int | None = None, stderr_tail: str = ""
    ) -> None:
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail
        super().__init__(message)


class JobTimeoutError(MediaForgeError):
    """Raised when a job exceeds its deadline."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:g} seconds")


class JobCancelledError(MediaForgeError):
    """Raised inside the executor when the user cancels a job."""

    def __init__(self, message: str = "Cancelled by user") -> None:
        super().__init__(message)


class ResourceError(MediaForgeError):
    """Raised for local resource problems such as a full disk.

    Terminal; the message tells the user what to fix.
    """


class TaskNotFoundError(MediaForgeError):
    """Raised when a task id is not in the registry.

    Attributes:
        task_id: The id that was not found.
        operation: The operation that was attempted (e.g., "cancel").
    """

    def __init__(self, task_id: str, operation: str) -> None:
        self.task_id = task_id
        self.operation = operation
        super().__init__(f"Cannot {operation} task {task_id}: not found")


class TaskStateError(MediaForgeError):
    """Raised when an operation is not valid for the task's current state."""

    def __init__(self, task_id: str, message: str) -> None:
        self.task_id = task_id
        super().__init__(message)


class UnsupportedOperationError(MediaForgeError):
    """Raised when an operation is not supported for a job kind."""

    def __init__(self, task_id: str, operation: str, kind: str) -> None:
        self.task_id = task_id
        self.operation = operation
        super().__init__(
            f"Cannot {operation} task {task_id}: not supported for {kind} jobs"
        )


class InvalidTransitionError(MediaForgeError):
    """Raised when a mutator attempts a status change the state machine forbids."""

    def __init__(self, task_id: str, current: str, new: str) -> None:
        self.task_id = task_id
        self.current = current
        self.new = new
        super().__init__(f"Task {task_id}: invalid transition {current} -> {new}")
