"""External tool detection and progress parsing.

This module provides infrastructure for locating yt-dlp and ffmpeg,
reading their versions and turning their output into progress updates.
"""

from mediaforge.tools.detection import (
    FFMPEG,
    YTDLP,
    detect_tool,
    detect_tools,
    find_tool,
    parse_version_string,
    require_tool,
)

# FFmpeg progress parsing
from mediaforge.tools.ffmpeg_progress import (
    DurationRatioParser,
    parse_duration,
    parse_progress_line,
)
from mediaforge.tools.models import ProgressUpdate, ToolInfo, ToolRegistry, ToolStatus
from mediaforge.tools.progress import MonotonicProgress, ProgressParser

# yt-dlp progress parsing
from mediaforge.tools.ytdlp_progress import (
    DiscreteFieldParser,
    parse_destination,
    parse_download_line,
)

__all__ = [
    "FFMPEG",
    "YTDLP",
    "DiscreteFieldParser",
    "DurationRatioParser",
    "MonotonicProgress",
    "ProgressParser",
    "ProgressUpdate",
    "ToolInfo",
    "ToolRegistry",
    "ToolStatus",
    "detect_tool",
    "detect_tools",
    "find_tool",
    "parse_destination",
    "parse_download_line",
    "parse_duration",
    "parse_progress_line",
    "parse_version_string",
    "require_tool",
]
