"""HTTP application for server mode.

This module provides the aiohttp Application with the health check
endpoint, task API routes and runtime state management.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from aiohttp import web

from mediaforge import __version__
from mediaforge.server.api import setup_api_routes
from mediaforge.server.api.events import SnapshotBroadcaster
from mediaforge.server.lifecycle import ServerLifecycle
from mediaforge.tools.detection import detect_tools

if TYPE_CHECKING:
    from mediaforge.jobs.orchestrator import Orchestrator
    from mediaforge.tools.models import ToolRegistry

logger = logging.getLogger(__name__)

TOOL_DETECTION_TIMEOUT = 30.0  # seconds


@dataclass
class HealthStatus:
    """Health check response payload."""

    status: str
    """Overall status: 'healthy', 'degraded', or 'unhealthy'."""

    uptime_seconds: float
    """Seconds since server startup."""

    version: str
    """MediaForge version string."""

    shutting_down: bool = False
    """True if graceful shutdown is in progress."""

    tools: dict[str, Any] = field(default_factory=dict)
    """Availability and version of each external tool."""

    jobs: dict[str, Any] = field(default_factory=dict)
    """Limiter usage and task counts per job family."""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


async def _detect_tools(app: web.Application) -> None:
    """Startup handler that detects tools unless they were provided."""
    if app["tools"] is not None:
        return
    orchestrator: Orchestrator = app["orchestrator"]
    try:
        app["tools"] = await asyncio.wait_for(
            asyncio.to_thread(detect_tools, orchestrator.tool_paths),
            timeout=TOOL_DETECTION_TIMEOUT,
        )
    except asyncio.TimeoutError:
        logger.warning("Tool detection timed out after %.0fs", TOOL_DETECTION_TIMEOUT)


async def _close_event_streams(app: web.Application) -> None:
    app["lifecycle"].initiate_shutdown()
    app["broadcaster"].close()


async def _shutdown_orchestrator(app: web.Application) -> None:
    """Cleanup handler that cancels every active job."""
    lifecycle: ServerLifecycle = app["lifecycle"]
    orchestrator: Orchestrator = app["orchestrator"]
    await orchestrator.shutdown(timeout=lifecycle.shutdown_timeout)


def create_app(
    orchestrator: Orchestrator,
    *,
    lifecycle: ServerLifecycle | None = None,
    tools: ToolRegistry | None = None,
) -> web.Application:
    """Create and configure the aiohttp Application.

    Args:
        orchestrator: Engine the API drives. The application shuts it down
            on cleanup.
        lifecycle: Shutdown coordination state; a fresh one if omitted.
        tools: Pre-detected tool information; detected at startup if omitted.

    Returns:
        Configured aiohttp Application.
    """
    app = web.Application()

    broadcaster = SnapshotBroadcaster()
    orchestrator.add_notifier(broadcaster)

    app["orchestrator"] = orchestrator
    app["broadcaster"] = broadcaster
    app["lifecycle"] = lifecycle or ServerLifecycle()
    app["tools"] = tools

    app.router.add_get("/health", health_handler)
    setup_api_routes(app)

    app.on_startup.append(_detect_tools)
    app.on_shutdown.append(_close_event_streams)
    app.on_cleanup.append(_shutdown_orchestrator)

    return app


async def health_handler(request: web.Request) -> web.Response:
    """Handle GET /health requests.

    Returns JSON health status with appropriate HTTP status code:
    - 200: healthy (every tool available, not shutting down)
    - 503: degraded/unhealthy (a tool missing, or shutting down)
    """
    lifecycle: ServerLifecycle = request.app["lifecycle"]
    orchestrator: Orchestrator = request.app["orchestrator"]
    tools: ToolRegistry | None = request.app["tools"]

    shutting_down = lifecycle.is_shutting_down or orchestrator.is_closed
    tools_ok = tools is not None and tools.all_available

    if shutting_down:
        status = "unhealthy"
    elif not tools_ok:
        status = "degraded"
    else:
        status = "healthy"

    health = HealthStatus(
        status=status,
        uptime_seconds=round(lifecycle.uptime_seconds, 1),
        version=__version__,
        shutting_down=shutting_down,
        tools=(
            {tool.name: tool.to_dict() for tool in tools.all_tools()}
            if tools is not None
            else {}
        ),
        jobs=orchestrator.stats(),
    )

    http_status = 200 if status == "healthy" else 503
    return web.json_response(health.to_dict(), status=http_status)
