"""Configuration management for MediaForge.

Configuration is loaded with precedence handling:
1. CLI flags (highest priority)
2. Environment variables (MEDIAFORGE_*)
3. Config file (~/.mediaforge/config.toml)
4. Default values (lowest priority)
"""

from mediaforge.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from mediaforge.config.env import EnvReader
from mediaforge.config.loader import (
    clear_config_cache,
    get_config,
    get_default_config_path,
    load_config_file,
)
from mediaforge.config.logging_factory import (
    build_logging_config,
    configure_logging_from_cli,
)
from mediaforge.config.models import (
    JobsConfig,
    LoggingConfig,
    MediaForgeConfig,
    ServerConfig,
    ToolPathsConfig,
)

__all__ = [
    "ConfigBuilder",
    "ConfigSource",
    "EnvReader",
    "JobsConfig",
    "LoggingConfig",
    "MediaForgeConfig",
    "ServerConfig",
    "ToolPathsConfig",
    "build_logging_config",
    "clear_config_cache",
    "configure_logging_from_cli",
    "get_config",
    "get_default_config_path",
    "load_config_file",
    "source_from_env",
    "source_from_file",
]
