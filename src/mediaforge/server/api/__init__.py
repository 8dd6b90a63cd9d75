"""API route modules for the MediaForge HTTP server.

- tasks.py: Task listing, submission and control endpoints
- events.py: Server-Sent Events (SSE) for real-time task updates
- errors.py: Standard JSON error envelope

Task ids are UUIDv4 strings (e.g. ``/api/tasks/{task_id}``).
"""

from aiohttp import web

from mediaforge.server.api.events import setup_events_routes
from mediaforge.server.api.tasks import setup_task_routes

__all__ = [
    "setup_api_routes",
]


def setup_api_routes(app: web.Application) -> None:
    """Register all API routes with the application.

    Args:
        app: aiohttp Application to configure.
    """
    setup_task_routes(app)
    setup_events_routes(app)
