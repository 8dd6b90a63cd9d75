"""Configuration loader with precedence handling.

Configuration is loaded with the following precedence (highest to lowest):
1. CLI arguments (passed directly to functions)
2. Environment variables (MEDIAFORGE_*)
3. Config file (~/.mediaforge/config.toml)
4. Default values

Environment variables:
- MEDIAFORGE_CONFIG_PATH: Path to config file (overrides default location)
- MEDIAFORGE_YTDLP_PATH: Path to yt-dlp executable
- MEDIAFORGE_FFMPEG_PATH: Path to ffmpeg executable
- MEDIAFORGE_DOWNLOAD_DIR: Default output directory
- MEDIAFORGE_FETCH_CONCURRENCY / MEDIAFORGE_TRANSCODE_CONCURRENCY
- MEDIAFORGE_FETCH_TIMEOUT / MEDIAFORGE_TRANSCODE_TIMEOUT (seconds)
- MEDIAFORGE_FETCH_MAX_ATTEMPTS, MEDIAFORGE_MIN_FREE_SPACE_MB
- MEDIAFORGE_SERVER_BIND / MEDIAFORGE_SERVER_PORT
- MEDIAFORGE_LOG_LEVEL / MEDIAFORGE_LOG_FILE / MEDIAFORGE_LOG_FORMAT
"""

from __future__ import annotations

import logging
import os
import threading
import tomllib
from pathlib import Path

from mediaforge.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from mediaforge.config.env import EnvReader
from mediaforge.config.models import MediaForgeConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".mediaforge"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

# Cache for loaded config files (path -> (parsed dict, mtime))
_config_cache: dict[Path, tuple[dict, float]] = {}
_config_cache_lock = threading.Lock()


def get_default_config_path() -> Path:
    """Get the default config file path.

    Can be overridden by the MEDIAFORGE_CONFIG_PATH environment variable.
    """
    env_path = os.environ.get("MEDIAFORGE_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_FILE


def load_config_file(path: Path | None = None) -> dict:
    """Load configuration from a TOML file.

    Results are cached with mtime-based invalidation.

    Args:
        path: Path to config file. If None, uses default location.

    Returns:
        Parsed configuration dict. Empty dict if the file doesn't exist or
        cannot be parsed (a warning is logged in that case).
    """
    if path is None:
        path = get_default_config_path()

    try:
        current_mtime = path.stat().st_mtime
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}

    with _config_cache_lock:
        cached = _config_cache.get(path)
        if cached is not None and cached[1] == current_mtime:
            return cached[0]

        try:
            with path.open("rb") as f:
                result = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning("Failed to load config file %s: %s", path, e)
            result = {}
        else:
            logger.debug("Loaded config from %s", path)

        _config_cache[path] = (result, current_mtime)
        return result


def clear_config_cache() -> None:
    """Clear the config file cache. Primarily useful for testing."""
    with _config_cache_lock:
        _config_cache.clear()


def get_config(
    config_path: Path | None = None,
    # CLI overrides (highest precedence)
    ytdlp_path: Path | None = None,
    ffmpeg_path: Path | None = None,
    download_dir: Path | None = None,
    # Optional dependency injection for testing
    env_reader: EnvReader | None = None,
) -> MediaForgeConfig:
    """Get configuration with full precedence handling.

    Args:
        config_path: Path to config file (overrides MEDIAFORGE_CONFIG_PATH).
        ytdlp_path: CLI override for the yt-dlp path.
        ffmpeg_path: CLI override for the ffmpeg path.
        download_dir: CLI override for the default output directory.
        env_reader: Optional EnvReader for testing (uses os.environ if None).

    Returns:
        MediaForgeConfig with merged configuration.

    Raises:
        ValueError: If the merged values fail validation.
    """
    reader = env_reader or EnvReader()
    file_config = load_config_file(config_path)

    builder = ConfigBuilder()
    builder.apply(source_from_file(file_config))
    builder.apply(source_from_env(reader))
    builder.apply(
        ConfigSource(
            ytdlp_path=ytdlp_path,
            ffmpeg_path=ffmpeg_path,
            download_dir=download_dir,
        )
    )
    return builder.build()
