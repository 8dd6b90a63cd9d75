"""Request handler decorators."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from aiohttp import web

from mediaforge.server.api.errors import SHUTTING_DOWN, api_error

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def shutdown_check_middleware(handler: Handler) -> Handler:
    """Decorator middleware that returns 503 if the server is shutting down.

    Usage:
        @shutdown_check_middleware
        async def my_api_handler(request: web.Request) -> web.Response:
            ...
    """

    async def wrapper(request: web.Request) -> web.StreamResponse:
        lifecycle = request.app.get("lifecycle")
        orchestrator = request.app.get("orchestrator")
        if (lifecycle and lifecycle.is_shutting_down) or (
            orchestrator is not None and orchestrator.is_closed
        ):
            return api_error(
                "Service is shutting down", code=SHUTTING_DOWN, status=503
            )
        return await handler(request)

    return wrapper
