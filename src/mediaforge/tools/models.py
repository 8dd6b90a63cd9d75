"""Data models for external tools and their progress output."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class ToolStatus(Enum):
    """Status of an external tool."""

    AVAILABLE = "available"  # Tool found and version detected
    MISSING = "missing"  # Tool not found in PATH or configured location
    ERROR = "error"  # Tool found but detection failed


@dataclass
class ToolInfo:
    """Detection result for one external tool."""

    name: str
    path: Path | None = None
    version: str | None = None
    version_tuple: tuple[int, ...] | None = None  # Parsed version for comparison
    status: ToolStatus = ToolStatus.MISSING
    status_message: str | None = None
    detected_at: datetime | None = None

    def is_available(self) -> bool:
        """Return True if the tool is available and usable."""
        return self.status == ToolStatus.AVAILABLE

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": str(self.path) if self.path else None,
            "version": self.version,
            "status": self.status.value,
            "status_message": self.status_message,
        }


@dataclass
class ToolRegistry:
    """Detection results for every tool the engine drives."""

    ytdlp: ToolInfo = field(default_factory=lambda: ToolInfo(name="yt-dlp"))
    ffmpeg: ToolInfo = field(default_factory=lambda: ToolInfo(name="ffmpeg"))

    def all_tools(self) -> list[ToolInfo]:
        return [self.ytdlp, self.ffmpeg]

    @property
    def all_available(self) -> bool:
        return all(tool.is_available() for tool in self.all_tools())


@dataclass
class ProgressUpdate:
    """One normalized progress observation produced by a parser.

    A field left as None means the line carried no information for it.
    ``indeterminate`` marks a line that proves the job is alive but whose
    completion ratio cannot be computed.
    """

    percent: float | None = None
    speed: str | None = None
    eta: str | None = None
    destination: str | None = None
    indeterminate: bool = False

    @property
    def is_empty(self) -> bool:
        return (
            self.percent is None
            and self.speed is None
            and self.eta is None
            and self.destination is None
            and not self.indeterminate
        )
