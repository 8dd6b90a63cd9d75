"""Configuration builder with explicit layering.

ConfigBuilder composes MediaForgeConfig from several ConfigSources; later
sources override earlier ones for every value they actually set.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from mediaforge.config.env import EnvReader
from mediaforge.config.models import (
    JobsConfig,
    LoggingConfig,
    MediaForgeConfig,
    ServerConfig,
    ToolPathsConfig,
)


@dataclass
class ConfigSource:
    """Configuration values from a single source.

    None values mean "not specified in this source" and never override
    values from lower-precedence sources.
    """

    # Tool paths
    ytdlp_path: Path | None = None
    ffmpeg_path: Path | None = None

    download_dir: Path | None = None

    # Jobs config
    fetch_concurrency: int | None = None
    transcode_concurrency: int | None = None
    fetch_timeout_seconds: float | None = None
    transcode_timeout_seconds: float | None = None
    cancel_grace_seconds: float | None = None
    fetch_max_attempts: int | None = None
    retry_backoff_seconds: float | None = None
    min_free_space_mb: int | None = None
    notify_interval_seconds: float | None = None

    # Server config
    server_bind: str | None = None
    server_port: int | None = None
    server_shutdown_timeout: float | None = None

    # Logging config
    logging_level: str | None = None
    logging_file: Path | None = None
    logging_format: str | None = None
    logging_include_stderr: bool | None = None
    logging_max_bytes: int | None = None
    logging_backup_count: int | None = None


# Config section -> ConfigSource field prefix. JobsConfig field names are
# used unprefixed.
_SECTIONS: dict[str, tuple[type, str]] = {
    "jobs": (JobsConfig, ""),
    "server": (ServerConfig, "server_"),
    "logging": (LoggingConfig, "logging_"),
}

_PATH_KEYS = frozenset({"download_dir", "logging_file", "ytdlp_path", "ffmpeg_path"})


class ConfigBuilder:
    """Layer ConfigSources; values a later source sets win.

    Example:
        builder = ConfigBuilder()
        builder.apply(source_from_file(file_config))
        builder.apply(source_from_env(reader))
        builder.apply(cli_source)
        config = builder.build()
    """

    def __init__(self) -> None:
        self._layered: dict[str, Any] = {}

    def apply(self, source: ConfigSource) -> None:
        self._layered.update(
            (f.name, getattr(source, f.name))
            for f in fields(source)
            if getattr(source, f.name) is not None
        )

    def _section(self, cls: type, prefix: str) -> Any:
        # Unset keys fall through to the section dataclass defaults
        kwargs = {
            f.name: self._layered[prefix + f.name]
            for f in fields(cls)
            if prefix + f.name in self._layered
        }
        return cls(**kwargs)

    def build(self) -> MediaForgeConfig:
        """Build the effective MediaForgeConfig.

        Raises:
            ValueError: If a section's validation rejects a value.
        """
        sections = {
            name: self._section(cls, prefix)
            for name, (cls, prefix) in _SECTIONS.items()
        }
        tools = ToolPathsConfig(
            ytdlp=self._layered.get("ytdlp_path"),
            ffmpeg=self._layered.get("ffmpeg_path"),
        )
        config = MediaForgeConfig(tools=tools, **sections)
        if "download_dir" in self._layered:
            config.download_dir = self._layered["download_dir"]
        return config


def _path_or_none(value: Any) -> Path | None:
    return Path(value).expanduser() if value else None


def source_from_file(file_config: dict[str, Any]) -> ConfigSource:
    """Flatten a parsed TOML config file into a ConfigSource.

    Layout::

        download_dir = "~/Videos"

        [tools]
        ytdlp = "/usr/local/bin/yt-dlp"
        ffmpeg = "/usr/bin/ffmpeg"

        [jobs]
        fetch_concurrency = 3

        [server]
        port = 8765

        [logging]
        level = "debug"

    Keys a section does not know are ignored.
    """
    values: dict[str, Any] = {"download_dir": file_config.get("download_dir")}
    for tool, key in (("ytdlp", "ytdlp_path"), ("ffmpeg", "ffmpeg_path")):
        values[key] = file_config.get("tools", {}).get(tool)
    for section, (cls, prefix) in _SECTIONS.items():
        table = file_config.get(section, {})
        for f in fields(cls):
            if f.name in table:
                values[prefix + f.name] = table[f.name]

    for key in _PATH_KEYS:
        values[key] = _path_or_none(values.get(key))
    return ConfigSource(**values)


# ConfigSource field -> (variable, reader method)
_ENV_VARS: dict[str, tuple[str, str]] = {
    "ytdlp_path": ("MEDIAFORGE_YTDLP_PATH", "get_path"),
    "ffmpeg_path": ("MEDIAFORGE_FFMPEG_PATH", "get_path"),
    "download_dir": ("MEDIAFORGE_DOWNLOAD_DIR", "get_path"),
    "fetch_concurrency": ("MEDIAFORGE_FETCH_CONCURRENCY", "get_int"),
    "transcode_concurrency": ("MEDIAFORGE_TRANSCODE_CONCURRENCY", "get_int"),
    "fetch_timeout_seconds": ("MEDIAFORGE_FETCH_TIMEOUT", "get_float"),
    "transcode_timeout_seconds": ("MEDIAFORGE_TRANSCODE_TIMEOUT", "get_float"),
    "fetch_max_attempts": ("MEDIAFORGE_FETCH_MAX_ATTEMPTS", "get_int"),
    "min_free_space_mb": ("MEDIAFORGE_MIN_FREE_SPACE_MB", "get_int"),
    "server_bind": ("MEDIAFORGE_SERVER_BIND", "get_str"),
    "server_port": ("MEDIAFORGE_SERVER_PORT", "get_int"),
    "logging_level": ("MEDIAFORGE_LOG_LEVEL", "get_str"),
    "logging_file": ("MEDIAFORGE_LOG_FILE", "get_path"),
    "logging_format": ("MEDIAFORGE_LOG_FORMAT", "get_str"),
}

# Written to, so they need not exist yet
_CREATABLE_PATHS = frozenset({"download_dir", "logging_file"})


def source_from_env(reader: EnvReader) -> ConfigSource:
    """Create a ConfigSource from MEDIAFORGE_* environment variables.

    Tool paths that do not exist are ignored with a warning.
    """
    values: dict[str, Any] = {}
    for key, (var, method) in _ENV_VARS.items():
        if method == "get_path":
            values[key] = reader.get_path(var, must_exist=key not in _CREATABLE_PATHS)
        else:
            values[key] = getattr(reader, method)(var)
    return ConfigSource(**values)
