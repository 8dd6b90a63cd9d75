"""Checks run before a job is admitted.

A job that cannot possibly succeed (missing binary, unwritable or full
output directory) fails here while still Queued instead of occupying a
concurrency slot. These functions block on the filesystem and are called
through ``asyncio.to_thread``.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from mediaforge.jobs.exceptions import ResourceError
from mediaforge.tools.detection import FFMPEG, YTDLP, require_tool

if TYPE_CHECKING:
    from mediaforge.config.models import ToolPathsConfig
    from mediaforge.jobs.kinds import MediaJob

logger = logging.getLogger(__name__)

_BYTES_PER_MB = 1024 * 1024


def ensure_writable_dir(path: Path) -> None:
    """Create ``path`` if needed and prove it is writable with a probe file.

    Raises:
        ResourceError: If the directory cannot be created or written.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ResourceError(f"Cannot create output directory {path}: {e}") from e
    try:
        with tempfile.NamedTemporaryFile(dir=path, prefix=".mediaforge-probe-"):
            pass
    except OSError as e:
        raise ResourceError(
            f"No write permission for output directory {path}: {e}"
        ) from e


def check_free_space(path: Path, min_free_mb: int) -> int:
    """Ensure at least ``min_free_mb`` MiB are free on the filesystem of ``path``.

    Returns:
        Free bytes.

    Raises:
        ResourceError: If there is not enough space.
    """
    try:
        free = shutil.disk_usage(path).free
    except OSError as e:
        logger.warning("Could not determine free space for %s: %s", path, e)
        return 0
    if free < min_free_mb * _BYTES_PER_MB:
        raise ResourceError(
            f"Insufficient disk space in {path}: "
            f"{free // _BYTES_PER_MB} MB free, at least {min_free_mb} MB required. "
            "Free some space or choose another output directory."
        )
    return free


def resolve_binary(job: MediaJob, tool_paths: ToolPathsConfig | None) -> Path:
    """Find the executable for a job's tool.

    Raises:
        SpawnError: If the tool is not installed.
    """
    configured = None
    if tool_paths is not None:
        configured = {YTDLP: tool_paths.ytdlp, FFMPEG: tool_paths.ffmpeg}.get(job.tool)
    return require_tool(job.tool, configured)


def run_preflight(
    job: MediaJob, tool_paths: ToolPathsConfig | None, min_free_mb: int
) -> Path:
    """Run every pre-admission check for ``job``.

    Returns:
        Path of the tool binary to spawn.

    Raises:
        SpawnError: Tool missing.
        ResourceError: Output directory unusable or full.
    """
    binary = resolve_binary(job, tool_paths)
    ensure_writable_dir(job.output_dir)
    if min_free_mb > 0:
        check_free_space(job.output_dir, min_free_mb)
    return binary
