"""Standardized API error response helper.

Provides a consistent error response format with machine-readable error codes
for all API endpoints. All error responses include:
- ``error``: Human-readable error message
- ``code``: Machine-readable error code string
- ``details`` (optional): Additional context for the error

Usage:
    from mediaforge.server.api.errors import api_error, INVALID_JSON

    return api_error("Request body must be JSON", code=INVALID_JSON)
"""

from __future__ import annotations

from typing import Any

from aiohttp import web

from mediaforge.jobs.exceptions import (
    InvalidTransitionError,
    MediaForgeError,
    TaskNotFoundError,
    TaskStateError,
    UnsupportedOperationError,
    ValidationError,
)

# --- Error code constants ---

INVALID_JSON = "INVALID_JSON"
INVALID_PARAMETER = "INVALID_PARAMETER"
VALIDATION_FAILED = "VALIDATION_FAILED"
NOT_FOUND = "NOT_FOUND"
TASK_STATE_CONFLICT = "TASK_STATE_CONFLICT"
UNSUPPORTED_OPERATION = "UNSUPPORTED_OPERATION"
SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
SHUTTING_DOWN = "SHUTTING_DOWN"
INTERNAL_ERROR = "INTERNAL_ERROR"


def api_error(
    message: str,
    *,
    code: str,
    status: int = 400,
    details: Any = None,
) -> web.Response:
    """Create a standardized JSON error response.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (use constants from this module).
        status: HTTP status code (default 400).
        details: Optional additional context (string, list, or dict).

    Returns:
        aiohttp JSON response with ``{"error": ..., "code": ...}`` body.
    """
    body: dict[str, Any] = {"error": message, "code": code}
    if details is not None:
        body["details"] = details
    return web.json_response(body, status=status)


def error_for_exception(exc: MediaForgeError) -> web.Response:
    """Map an engine exception to its HTTP error response.

    400 validation, 404 not found, 409 state conflict, 501 unsupported.
    """
    if isinstance(exc, ValidationError):
        return api_error(
            str(exc), code=VALIDATION_FAILED, details=exc.errors or None
        )
    if isinstance(exc, TaskNotFoundError):
        return api_error(str(exc), code=NOT_FOUND, status=404)
    if isinstance(exc, (TaskStateError, InvalidTransitionError)):
        return api_error(str(exc), code=TASK_STATE_CONFLICT, status=409)
    if isinstance(exc, UnsupportedOperationError):
        return api_error(str(exc), code=UNSUPPORTED_OPERATION, status=501)
    return api_error(str(exc), code=INTERNAL_ERROR, status=500)
