"""API handlers for task endpoints.

Endpoints:
    GET /api/tasks - List tasks, optionally filtered by status or kind
    POST /api/tasks/fetch - Submit one or more fetch jobs
    POST /api/tasks/transcode - Submit one or more transcode jobs
    GET /api/tasks/{task_id} - Get task detail
    POST /api/tasks/{task_id}/pause - Pause a running fetch
    POST /api/tasks/{task_id}/resume - Resume a paused fetch
    POST /api/tasks/{task_id}/cancel - Cancel a task
    DELETE /api/tasks/{task_id} - Remove a terminal task
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web

from mediaforge.domain.enums import JobKind, TaskStatus
from mediaforge.jobs.exceptions import MediaForgeError, ValidationError
from mediaforge.jobs.requests import FetchRequest, TranscodeRequest, build_request
from mediaforge.server.api.errors import (
    INVALID_JSON,
    INVALID_PARAMETER,
    NOT_FOUND,
    SHUTTING_DOWN,
    VALIDATION_FAILED,
    api_error,
    error_for_exception,
)
from mediaforge.server.middleware import shutdown_check_middleware

if TYPE_CHECKING:
    from pydantic import BaseModel

    from mediaforge.jobs.orchestrator import Orchestrator

logger = logging.getLogger(__name__)

# Maximum number of jobs accepted in one request
MAX_BATCH_SIZE = 100


def _orchestrator(request: web.Request) -> Orchestrator:
    return request.app["orchestrator"]


async def _read_json_object(request: web.Request) -> dict[str, Any] | web.Response:
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return api_error("Request body must be valid JSON", code=INVALID_JSON)
    if not isinstance(data, dict):
        return api_error("Request body must be a JSON object", code=INVALID_JSON)
    return data


def _expand_batch(
    data: dict[str, Any], list_field: str, item_field: str
) -> list[dict[str, Any]]:
    """Turn ``{"urls": [a, b], ...}`` into one payload per item.

    The remaining fields are shared by every item.

    Raises:
        ValidationError: If the list is malformed or too long.
    """
    if list_field not in data:
        return [data]
    items = data[list_field]
    if item_field in data:
        raise ValidationError(f"Use either '{item_field}' or '{list_field}', not both")
    if not isinstance(items, list) or not items:
        raise ValidationError(f"'{list_field}' must be a non-empty list")
    if len(items) > MAX_BATCH_SIZE:
        raise ValidationError(
            f"At most {MAX_BATCH_SIZE} jobs per request, got {len(items)}"
        )
    shared = {k: v for k, v in data.items() if k != list_field}
    return [{**shared, item_field: item} for item in items]


async def _submit(
    request: web.Request,
    model: type[BaseModel],
    list_field: str,
    item_field: str,
) -> web.Response:
    body = await _read_json_object(request)
    if isinstance(body, web.Response):
        return body
    body.pop("kind", None)

    try:
        payloads = _expand_batch(body, list_field, item_field)
        specs = [build_request(model, payload) for payload in payloads]
    except ValidationError as e:
        return api_error(str(e), code=VALIDATION_FAILED, details=e.errors or None)

    orchestrator = _orchestrator(request)
    try:
        task_ids = await orchestrator.submit(specs)
    except RuntimeError as e:
        return api_error(str(e), code=SHUTTING_DOWN, status=503)
    except MediaForgeError as e:
        return error_for_exception(e)

    tasks = [orchestrator.get_task(task_id) for task_id in task_ids]
    return web.json_response(
        {
            "task_ids": task_ids,
            "tasks": [t.to_dict() for t in tasks if t is not None],
        },
        status=201,
    )


async def api_tasks_handler(request: web.Request) -> web.Response:
    """Handle GET /api/tasks - list tasks.

    Query parameters:
        status: Filter by task status (queued, downloading, ...)
        kind: Filter by job kind (fetch, transcode)

    Returns:
        JSON response with ``tasks`` and ``total``.
    """
    status_filter = None
    kind_filter = None
    if "status" in request.query:
        try:
            status_filter = TaskStatus(request.query["status"])
        except ValueError:
            return api_error(
                f"Invalid status value: '{request.query['status']}'",
                code=INVALID_PARAMETER,
            )
    if "kind" in request.query:
        try:
            kind_filter = JobKind(request.query["kind"])
        except ValueError:
            return api_error(
                f"Invalid kind value: '{request.query['kind']}'",
                code=INVALID_PARAMETER,
            )

    tasks = [
        t
        for t in _orchestrator(request).list_tasks()
        if (status_filter is None or t.status is status_filter)
        and (kind_filter is None or t.kind is kind_filter)
    ]
    return web.json_response(
        {"tasks": [t.to_dict() for t in tasks], "total": len(tasks)}
    )


@shutdown_check_middleware
async def api_submit_fetch_handler(request: web.Request) -> web.Response:
    """Handle POST /api/tasks/fetch - submit fetch jobs.

    The body is a FetchRequest, or FetchRequest fields with a ``urls`` list
    in place of ``url`` to submit one job per URL.
    """
    return await _submit(request, FetchRequest, "urls", "url")


@shutdown_check_middleware
async def api_submit_transcode_handler(request: web.Request) -> web.Response:
    """Handle POST /api/tasks/transcode - submit transcode jobs.

    The body is a TranscodeRequest, or TranscodeRequest fields with an
    ``input_files`` list in place of ``input_file``.
    """
    return await _submit(request, TranscodeRequest, "input_files", "input_file")


async def api_task_detail_handler(request: web.Request) -> web.Response:
    """Handle GET /api/tasks/{task_id}."""
    task_id = request.match_info["task_id"]
    snapshot = _orchestrator(request).get_task(task_id)
    if snapshot is None:
        return api_error("Task not found", code=NOT_FOUND, status=404)
    return web.json_response(snapshot.to_dict())


def _control_handler(operation: str):
    async def handler(request: web.Request) -> web.Response:
        task_id = request.match_info["task_id"]
        orchestrator = _orchestrator(request)
        try:
            snapshot = getattr(orchestrator, operation)(task_id)
        except MediaForgeError as e:
            return error_for_exception(e)
        logger.debug("API %s for task %s", operation, task_id)
        return web.json_response(snapshot.to_dict())

    handler.__name__ = f"api_task_{operation}_handler"
    handler.__doc__ = f"Handle POST /api/tasks/{{task_id}}/{operation}."
    return handler


api_task_pause_handler = _control_handler("pause")
api_task_resume_handler = _control_handler("resume")
api_task_cancel_handler = _control_handler("cancel")


async def api_task_delete_handler(request: web.Request) -> web.Response:
    """Handle DELETE /api/tasks/{task_id} - remove a terminal task."""
    task_id = request.match_info["task_id"]
    try:
        _orchestrator(request).remove(task_id)
    except MediaForgeError as e:
        return error_for_exception(e)
    return web.json_response({"removed": task_id})


def get_task_routes() -> list[tuple[str, str, object]]:
    """Return task route definitions as (method, path, handler) tuples."""
    return [
        ("GET", "/api/tasks", api_tasks_handler),
        ("POST", "/api/tasks/fetch", api_submit_fetch_handler),
        ("POST", "/api/tasks/transcode", api_submit_transcode_handler),
        ("GET", "/api/tasks/{task_id}", api_task_detail_handler),
        ("POST", "/api/tasks/{task_id}/pause", api_task_pause_handler),
        ("POST", "/api/tasks/{task_id}/resume", api_task_resume_handler),
        ("POST", "/api/tasks/{task_id}/cancel", api_task_cancel_handler),
        ("DELETE", "/api/tasks/{task_id}", api_task_delete_handler),
    ]


def setup_task_routes(app: web.Application) -> None:
    """Register task API routes with the application.

    Args:
        app: aiohttp Application to configure.
    """
    for method, path, handler in get_task_routes():
        app.router.add_route(method, path, handler)
