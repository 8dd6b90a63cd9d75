"""External tool detection and version parsing.

Finds yt-dlp and ffmpeg (configured path first, then PATH) and reads their
versions. Used by ``mediaforge doctor``, the health endpoint and the job
executor before spawning.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess  # nosec B404 - only for TimeoutExpired
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from mediaforge.core.subprocess_utils import run_command
from mediaforge.jobs.exceptions import SpawnError
from mediaforge.tools.models import ToolInfo, ToolRegistry, ToolStatus

if TYPE_CHECKING:
    from mediaforge.config.models import ToolPathsConfig

logger = logging.getLogger(__name__)

# Timeout for version detection commands (seconds)
DETECTION_TIMEOUT = 10

YTDLP = "yt-dlp"
FFMPEG = "ffmpeg"

# name -> (version flag, regex capturing the version)
_VERSION_PROBES: dict[str, tuple[str, str]] = {
    YTDLP: ("--version", r"^\s*(\S+)"),
    FFMPEG: ("-version", r"ffmpeg version (\S+)"),
}


def parse_version_string(version_str: str) -> tuple[int, ...] | None:
    """Parse a version string into a comparable tuple.

    Handles:
    - "6.1.1" -> (6, 1, 1)
    - "n6.1.1" -> (6, 1, 1)  (ffmpeg nightlies)
    - "2024.03.10" -> (2024, 3, 10)  (yt-dlp)

    Returns:
        Tuple of version components, or None if parsing fails.
    """
    if not version_str:
        return None
    version_str = version_str.lstrip("nv")
    match = re.match(r"(\d+(?:\.\d+)*)", version_str)
    if not match:
        return None
    return tuple(int(p) for p in match.group(1).split("."))


def find_tool(name: str, configured_path: Path | None = None) -> Path | None:
    """Find a tool executable.

    Args:
        name: Tool name (e.g., "ffmpeg").
        configured_path: Optional configured path override.

    Returns:
        Path to tool executable, or None if not found.
    """
    if configured_path:
        if configured_path.is_file():
            return configured_path
        logger.warning(
            "Configured path for %s is not a file: %s", name, configured_path
        )

    which_result = shutil.which(name)
    if which_result:
        return Path(which_result)
    return None


def require_tool(name: str, configured_path: Path | None = None) -> Path:
    """Resolve a tool or raise SpawnError.

    Raises:
        SpawnError: If the tool cannot be found.
    """
    path = find_tool(name, configured_path)
    if path is None:
        raise SpawnError(f"Required tool not available: {name}")
    return path


def detect_tool(name: str, configured_path: Path | None = None) -> ToolInfo:
    """Detect one tool and its version."""
    info = ToolInfo(name=name, detected_at=datetime.now(timezone.utc))

    path = find_tool(name, configured_path)
    if path is None:
        info.status = ToolStatus.MISSING
        info.status_message = f"{name} not found in PATH"
        return info
    info.path = path

    flag, pattern = _VERSION_PROBES[name]
    try:
        stdout, stderr, rc = run_command([path, flag], timeout=DETECTION_TIMEOUT)
    except (OSError, subprocess.TimeoutExpired) as e:
        info.status = ToolStatus.ERROR
        info.status_message = f"Failed to run {name}: {e}"
        return info

    if rc != 0:
        info.status = ToolStatus.ERROR
        info.status_message = f"Failed to get {name} version: {stderr.strip()}"
        return info

    version_match = re.search(pattern, stdout)
    if version_match:
        info.version = version_match.group(1)
        info.version_tuple = parse_version_string(info.version)

    info.status = ToolStatus.AVAILABLE
    return info


def detect_tools(tool_paths: ToolPathsConfig | None = None) -> ToolRegistry:
    """Detect every tool the engine drives.

    Args:
        tool_paths: Configured tool locations; PATH lookup when None.

    Returns:
        ToolRegistry with one ToolInfo per tool.
    """
    ytdlp_path = tool_paths.ytdlp if tool_paths else None
    ffmpeg_path = tool_paths.ffmpeg if tool_paths else None
    registry = ToolRegistry(
        ytdlp=detect_tool(YTDLP, ytdlp_path),
        ffmpeg=detect_tool(FFMPEG, ffmpeg_path),
    )
    for tool in registry.all_tools():
        if tool.is_available():
            logger.debug("Detected %s %s at %s", tool.name, tool.version, tool.path)
        else:
            logger.info("%s unavailable: %s", tool.name, tool.status_message)
    return registry
