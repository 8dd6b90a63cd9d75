"""MediaForge serve command for running the HTTP API.

This module provides the 'mediaforge serve' command which runs the job
engine behind an aiohttp server until SIGTERM or SIGINT.
"""

import asyncio
import logging
import os
import sys

import click

from mediaforge.cli import load_cli_config
from mediaforge.cli.exit_codes import ExitCode
from mediaforge.config.models import MediaForgeConfig

logger = logging.getLogger(__name__)


async def run_server(config: MediaForgeConfig, bind: str, port: int) -> int:
    """Run the HTTP server until a shutdown signal arrives.

    Args:
        config: Effective configuration.
        bind: Address to bind to.
        port: Port to bind to.

    Returns:
        Exit code (0 for clean shutdown, non-zero for errors).
    """
    from aiohttp import web

    from mediaforge.jobs.orchestrator import Orchestrator
    from mediaforge.server.app import create_app
    from mediaforge.server.lifecycle import ServerLifecycle
    from mediaforge.server.signals import (
        remove_signal_handlers,
        setup_signal_handlers,
    )

    shutdown_timeout = config.server.shutdown_timeout
    lifecycle = ServerLifecycle(shutdown_timeout=shutdown_timeout)
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    setup_signal_handlers(loop, lifecycle, shutdown_event)

    orchestrator = Orchestrator.from_config(config)
    app = create_app(orchestrator, lifecycle=lifecycle)

    runner = web.AppRunner(app)
    await runner.setup()

    try:
        site = web.TCPSite(runner, bind, port)
        await site.start()

        logger.info(
            "MediaForge server started on http://%s:%d (PID %d)",
            bind,
            port,
            os.getpid(),
        )
        logger.info("Health endpoint: http://%s:%d/health", bind, port)
        logger.info("Press Ctrl+C or send SIGTERM to stop")

        await shutdown_event.wait()

        logger.info(
            "Shutdown initiated, waiting up to %.1fs for active jobs", shutdown_timeout
        )

    except OSError as e:
        if "Address already in use" in str(e) or e.errno == 98:
            logger.error("Port %d is already in use", port)
            return ExitCode.GENERAL_ERROR
        if "Cannot assign requested address" in str(e) or e.errno == 99:
            logger.error("Cannot bind to address %s", bind)
            return ExitCode.GENERAL_ERROR
        logger.error("Server error: %s", e)
        return ExitCode.GENERAL_ERROR
    finally:
        remove_signal_handlers(loop)
        # Cleanup handlers cancel active jobs and wait for their tools
        await runner.cleanup()
        logger.info("MediaForge server stopped")

    return ExitCode.SUCCESS


@click.command("serve")
@click.option(
    "--bind",
    type=str,
    default=None,
    help="Address to bind to (default: 127.0.0.1).",
)
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    help="Port to bind to (default: 8765).",
)
@click.pass_context
def serve_command(ctx: click.Context, bind: str | None, port: int | None) -> None:
    """Run the job engine behind an HTTP API.

    Serves /health, /api/tasks and an SSE stream at /api/events/tasks.
    Handles graceful shutdown on SIGTERM or SIGINT (Ctrl+C): active jobs
    are cancelled and their tools stopped before the process exits.

    The server binds to localhost by default. Override with --bind to
    expose it on other interfaces.

    \b
    Examples:
        mediaforge serve                    # Start with defaults
        mediaforge serve --port 9000        # Custom port
        mediaforge --log-json serve         # JSON logging for systemd
    """
    config = load_cli_config(ctx)

    # CLI > config file > env vars > defaults
    server_bind = bind if bind is not None else config.server.bind
    server_port = port if port is not None else config.server.port

    if not 1 <= server_port <= 65535:
        click.echo(f"Error: port must be 1-65535, got {server_port}", err=True)
        ctx.exit(ExitCode.CONFIG_ERROR)

    if server_port < 1024:
        logger.warning("Port %d is privileged and may require root", server_port)

    logger.info(
        "Starting MediaForge server (bind=%s, port=%d, timeout=%.1fs)",
        server_bind,
        server_port,
        config.server.shutdown_timeout,
    )

    try:
        exit_code = asyncio.run(run_server(config, server_bind, server_port))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted before server started")
        sys.exit(ExitCode.INTERRUPTED)
