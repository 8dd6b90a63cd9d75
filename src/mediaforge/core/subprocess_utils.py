"""Blocking helper for quick tool calls such as ``yt-dlp --version``.

Fetch and transcode jobs never go through here; they run as asyncio
subprocesses under ``mediaforge.jobs.process`` so they can be paused and
killed.
"""

from __future__ import annotations

import logging
import subprocess  # nosec B404 - tool probes shell out by design
import time
from pathlib import Path
from typing import Any, NamedTuple

logger = logging.getLogger(__name__)


class CommandResult(NamedTuple):
    """Captured output of a finished command."""

    stdout: str
    stderr: str
    returncode: int


def run_command(
    args: list[str | Path],
    timeout: int = 30,
    errors: str = "replace",
    **kwargs: Any,
) -> CommandResult:
    """Run ``args`` to completion and capture decoded stdout and stderr.

    Raises:
        subprocess.TimeoutExpired: After ``timeout`` seconds. The child has
            already been killed by subprocess.run().
        FileNotFoundError: If the executable does not exist.
    """
    argv = [str(arg) for arg in args]
    tool = Path(argv[0]).name if argv else "?"
    logger.debug("Running %s", argv, extra={"command": tool})

    started = time.monotonic()
    try:
        completed = subprocess.run(  # nosec B603 - argv list, no shell
            argv,
            capture_output=True,
            text=True,
            errors=errors,
            timeout=timeout,
            **kwargs,
        )
    except subprocess.TimeoutExpired:
        logger.warning("%s did not exit within %ds", tool, timeout)
        raise

    logger.debug(
        "%s exited with %d",
        tool,
        completed.returncode,
        extra={
            "command": tool,
            "elapsed_seconds": round(time.monotonic() - started, 3),
        },
    )
    return CommandResult(
        completed.stdout or "", completed.stderr or "", completed.returncode
    )
