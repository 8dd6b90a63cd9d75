"""Configuration data models.

This module defines dataclasses for MediaForge configuration options.
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ToolPathsConfig:
    """Configuration for external tool paths.

    All paths are optional. If not specified, tools are looked up in PATH.
    """

    ytdlp: Path | None = None
    ffmpeg: Path | None = None


@dataclass
class JobsConfig:
    """Configuration for the job engine.

    Defaults match the behaviour users expect from the desktop app: a one
    hour ceiling for fetches, two hours for transcodes, three fetch attempts.
    """

    # Concurrency limit per job family
    fetch_concurrency: int = 3
    transcode_concurrency: int = 2

    # Per-job deadlines in seconds
    fetch_timeout_seconds: float = 3600.0
    transcode_timeout_seconds: float = 7200.0

    # Seconds between graceful terminate and force kill
    cancel_grace_seconds: float = 5.0

    # Fetch retry policy
    fetch_max_attempts: int = 3
    retry_backoff_seconds: float = 5.0

    # Minimum free space in the output directory before a job may start
    min_free_space_mb: int = 500

    # Minimum interval between progress-only notifications per task
    notify_interval_seconds: float = 0.25

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.fetch_concurrency < 1:
            raise ValueError(
                f"fetch_concurrency must be >= 1, got {self.fetch_concurrency}"
            )
        if self.transcode_concurrency < 1:
            raise ValueError(
                "transcode_concurrency must be >= 1, "
                f"got {self.transcode_concurrency}"
            )
        if self.fetch_timeout_seconds <= 0 or self.transcode_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")
        if self.cancel_grace_seconds < 0:
            raise ValueError(
                f"cancel_grace_seconds must be >= 0, got {self.cancel_grace_seconds}"
            )
        if self.fetch_max_attempts < 1:
            raise ValueError(
                f"fetch_max_attempts must be >= 1, got {self.fetch_max_attempts}"
            )
        if self.retry_backoff_seconds < 0:
            raise ValueError(
                "retry_backoff_seconds must be >= 0, "
                f"got {self.retry_backoff_seconds}"
            )
        if self.min_free_space_mb < 0:
            raise ValueError(
                f"min_free_space_mb must be >= 0, got {self.min_free_space_mb}"
            )
        if self.notify_interval_seconds < 0:
            raise ValueError("notify_interval_seconds must be >= 0")


@dataclass
class ServerConfig:
    """Configuration for `mediaforge serve`.

    Controls bind address, port, and shutdown behavior.
    """

    bind: str = "127.0.0.1"
    """Network address to bind to. Default localhost for security."""

    port: int = 8765
    """Port number for HTTP server."""

    shutdown_timeout: float = 30.0
    """Seconds to wait for running jobs to settle on shutdown."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be 1-65535, got {self.port}")
        if self.shutdown_timeout <= 0:
            raise ValueError(
                f"shutdown_timeout must be positive, got {self.shutdown_timeout}"
            )


@dataclass
class LoggingConfig:
    """Configuration for structured logging."""

    # Log level: debug, info, warning, error
    level: str = "info"

    # Log file path (None = stderr only)
    file: Path | None = None

    # Log format: text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = False

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    # Number of rotated files to keep
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )


@dataclass
class MediaForgeConfig:
    """Main configuration container.

    Aggregates all configuration sections.
    """

    tools: ToolPathsConfig = field(default_factory=ToolPathsConfig)
    jobs: JobsConfig = field(default_factory=JobsConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Default output directory for jobs that do not name one
    download_dir: Path = field(default_factory=lambda: Path.home() / "Downloads")
