"""Server-Sent Events (SSE) API handlers.

Streams task changes to clients as they happen.

Endpoints:
    GET /api/events/tasks - SSE stream of task updates
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

from aiohttp import web

from mediaforge.domain.models import TaskSnapshot
from mediaforge.server.api.errors import SERVICE_UNAVAILABLE, api_error
from mediaforge.server.middleware import shutdown_check_middleware

logger = logging.getLogger(__name__)

# SSE configuration
SSE_HEARTBEAT_INTERVAL = 15  # seconds
SSE_WRITE_TIMEOUT = 5.0  # seconds - timeout for writing to slow clients
SSE_QUEUE_SIZE = 256  # pending events per subscriber
MAX_SSE_CONNECTIONS = 100  # Maximum concurrent SSE connections


class SnapshotBroadcaster:
    """Task notifier that fans snapshots out to SSE subscribers.

    Must be notified from the event loop thread. A subscriber that falls
    behind loses its oldest pending progress updates. Terminal snapshots
    and the close sentinel are never dropped, so a queue may briefly hold
    more than ``queue_size`` items.
    """

    def __init__(self, queue_size: int = SSE_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._subscribers: set[asyncio.Queue[TaskSnapshot | None]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[TaskSnapshot | None]:
        queue: asyncio.Queue[TaskSnapshot | None] = asyncio.Queue()
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[TaskSnapshot | None]) -> None:
        self._subscribers.discard(queue)

    def notify(self, snapshot: TaskSnapshot) -> None:
        for queue in list(self._subscribers):
            _enqueue(queue, snapshot, self.queue_size)

    def close(self) -> None:
        """Tell every subscriber the stream is over."""
        for queue in list(self._subscribers):
            _enqueue(queue, None, self.queue_size)


def _enqueue(
    queue: asyncio.Queue[TaskSnapshot | None], item: TaskSnapshot | None, limit: int
) -> None:
    if queue.qsize() >= limit:
        pending = [queue.get_nowait() for _ in range(queue.qsize())]
        # Evict the oldest progress update; keep terminals and the sentinel
        for index, old in enumerate(pending):
            if old is not None and not old.is_terminal:
                del pending[index]
                break
        for old in pending:
            queue.put_nowait(old)
    queue.put_nowait(item)


async def _write_sse_event(
    response: web.StreamResponse,
    event_type: str,
    data: dict[str, Any],
    timeout: float = SSE_WRITE_TIMEOUT,
) -> bool:
    """Write an SSE event to the response stream.

    Args:
        response: The streaming response object.
        event_type: Event type name (e.g., 'task_update', 'heartbeat').
        data: Event data to JSON-serialize.
        timeout: Write timeout in seconds.

    Returns:
        True if write succeeded, False if connection was closed or timed out.
    """
    try:
        payload = f"event: {event_type}\ndata: {json.dumps(data)}\n\n"
        await asyncio.wait_for(
            response.write(payload.encode("utf-8")),
            timeout=timeout,
        )
        return True
    except asyncio.TimeoutError:
        logger.warning("SSE write timeout - slow client")
        return False
    except (ConnectionResetError, ConnectionAbortedError, BrokenPipeError):
        logger.debug("SSE client disconnected")
        return False


def _get_client_info(request: web.Request) -> tuple[str, str]:
    """Extract (client_ip, request_id) from a request for logging."""
    client_ip = request.remote or "unknown"
    request_id = request.headers.get("X-Request-ID", "unknown")
    return client_ip, request_id


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@shutdown_check_middleware
async def sse_tasks_handler(request: web.Request) -> web.StreamResponse:
    """Handle GET /api/events/tasks - SSE stream for task updates.

    Sends a ``tasks_snapshot`` event with every current task, then one
    ``task_update`` event per change and a ``heartbeat`` when idle.
    """
    client_ip, request_id = _get_client_info(request)
    broadcaster: SnapshotBroadcaster = request.app["broadcaster"]

    if broadcaster.subscriber_count >= MAX_SSE_CONNECTIONS:
        logger.warning(
            "SSE connection limit reached (%d), rejecting client=%s request_id=%s",
            MAX_SSE_CONNECTIONS,
            client_ip,
            request_id,
        )
        resp = api_error(
            "Service temporarily unavailable - too many connections",
            code=SERVICE_UNAVAILABLE,
            status=503,
        )
        resp.headers["Retry-After"] = "10"
        return resp

    heartbeat = request.app.get("sse_heartbeat_interval", SSE_HEARTBEAT_INTERVAL)
    queue = broadcaster.subscribe()
    logger.debug(
        "SSE tasks connection established client=%s request_id=%s (total: %d)",
        client_ip,
        request_id,
        broadcaster.subscriber_count,
    )

    response = web.StreamResponse(
        status=200,
        headers={
            "Content-Type": "text/event-stream",
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
    await response.prepare(request)

    try:
        tasks = request.app["orchestrator"].list_tasks()
        ok = await _write_sse_event(
            response,
            "tasks_snapshot",
            {"tasks": [t.to_dict() for t in tasks], "timestamp": _now_iso()},
        )
        while ok:
            try:
                snapshot = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                ok = await _write_sse_event(
                    response, "heartbeat", {"timestamp": _now_iso()}
                )
                continue

            if snapshot is None:
                await _write_sse_event(response, "close", {"reason": "server_shutdown"})
                break
            ok = await _write_sse_event(response, "task_update", snapshot.to_dict())

    except asyncio.CancelledError:
        logger.debug(
            "SSE tasks connection cancelled client=%s request_id=%s",
            client_ip,
            request_id,
        )
        raise  # Re-raise for proper aiohttp cleanup
    finally:
        broadcaster.unsubscribe(queue)
        logger.debug(
            "SSE tasks connection closed client=%s request_id=%s (remaining: %d)",
            client_ip,
            request_id,
            broadcaster.subscriber_count,
        )

    return response


def get_events_routes() -> list[tuple[str, str, object]]:
    """Return SSE event route definitions as (method, path, handler) tuples."""
    return [
        ("GET", "/api/events/tasks", sse_tasks_handler),
    ]


def setup_events_routes(app: web.Application) -> None:
    """Register SSE routes with the application."""
    for method, path, handler in get_events_routes():
        app.router.add_route(method, path, handler)
