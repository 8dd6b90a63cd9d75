"""Async helpers for spawning and stopping external tool processes.

Children are started in their own session on POSIX so that signals reach
the whole process group (yt-dlp, for example, runs ffmpeg as a child for
merging). Elsewhere the process itself is signalled.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import re
import signal
import subprocess  # nosec B404 - subprocess is required for tool invocation
import sys
from collections.abc import AsyncIterator, Sequence

from mediaforge.jobs.exceptions import SpawnError, UnsupportedOperationError

logger = logging.getLogger(__name__)

IS_POSIX = os.name == "posix"

# Read size for output pipes
_CHUNK_SIZE = 4096

# Tools redraw status lines with bare carriage returns
_LINE_SPLIT = re.compile(r"\r\n|\r|\n")


async def spawn(
    argv: Sequence[str], *, env: dict[str, str] | None = None
) -> asyncio.subprocess.Process:
    """Start an external tool with piped stdout/stderr.

    Args:
        argv: Fully validated argument vector; argv[0] is the binary.
        env: Optional environment for the child.

    Returns:
        The running process.

    Raises:
        SpawnError: If the binary cannot be started.
    """
    kwargs: dict = {}
    if IS_POSIX:
        kwargs["start_new_session"] = True
    elif sys.platform == "win32":
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP

    logger.debug("Spawning: %s", " ".join(argv))
    try:
        process = await asyncio.create_subprocess_exec(  # nosec B603
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
            **kwargs,
        )
    except OSError as e:
        raise SpawnError(f"Failed to start {argv[0]}: {e}") from e

    logger.debug("Spawned %s (pid %d)", os.path.basename(argv[0]), process.pid)
    return process


async def iter_lines(stream: asyncio.StreamReader) -> AsyncIterator[str]:
    """Yield decoded lines, splitting on ``\\n``, ``\\r\\n`` and bare ``\\r``."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        buffer += decoder.decode(chunk)
        # A trailing \r may be the first half of \r\n
        hold = ""
        if buffer.endswith("\r"):
            buffer, hold = buffer[:-1], "\r"
        parts = _LINE_SPLIT.split(buffer)
        buffer = parts.pop() + hold
        for line in parts:
            if line:
                yield line
    buffer = (buffer + decoder.decode(b"", final=True)).strip("\r")
    if buffer:
        yield buffer


def _signal(process: asyncio.subprocess.Process, sig: int) -> bool:
    """Send a signal to the process group (POSIX) or the process.

    Returns:
        False if the process no longer exists.
    """
    if process.returncode is not None:
        return False
    try:
        if IS_POSIX:
            os.killpg(process.pid, sig)
        else:
            process.send_signal(sig)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Group leader gone and pgid reused; fall back to the process itself
        try:
            process.send_signal(sig)
        except ProcessLookupError:
            return False
    return True


def suspend(process: asyncio.subprocess.Process) -> bool:
    """Stop the process group with SIGSTOP.

    Raises:
        UnsupportedOperationError: On platforms without job-control signals.
    """
    if not hasattr(signal, "SIGSTOP"):
        raise UnsupportedOperationError(str(process.pid), "pause", sys.platform)
    return _signal(process, signal.SIGSTOP)


def resume(process: asyncio.subprocess.Process) -> bool:
    """Continue a stopped process group with SIGCONT."""
    if not hasattr(signal, "SIGCONT"):
        raise UnsupportedOperationError(str(process.pid), "resume", sys.platform)
    return _signal(process, signal.SIGCONT)


async def force_kill(process: asyncio.subprocess.Process) -> int | None:
    """Kill the process group and reap the child."""
    kill_signal = getattr(signal, "SIGKILL", signal.SIGTERM)
    if _signal(process, kill_signal):
        logger.debug("Sent kill to pid %d", process.pid)
    return await process.wait()


async def terminate_gracefully(
    process: asyncio.subprocess.Process, grace_seconds: float
) -> int | None:
    """Ask the process to exit, then kill it if it outlives the grace period.

    A stopped (paused) process is continued after the terminate signal so
    it can act on it.

    Returns:
        The process return code.
    """
    if process.returncode is not None:
        return process.returncode

    _signal(process, signal.SIGTERM)
    if hasattr(signal, "SIGCONT"):
        _signal(process, signal.SIGCONT)

    try:
        return await asyncio.wait_for(process.wait(), timeout=grace_seconds)
    except asyncio.TimeoutError:
        logger.info(
            "Process %d ignored terminate for %.1fs, killing",
            process.pid,
            grace_seconds,
        )
    return await force_kill(process)
