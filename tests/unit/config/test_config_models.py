"""Tests for configuration dataclasses."""

import pytest

from mediaforge.config.models import (
    JobsConfig,
    LoggingConfig,
    MediaForgeConfig,
    ServerConfig,
)


class TestJobsConfig:
    def test_defaults(self):
        config = JobsConfig()
        assert config.fetch_concurrency == 3
        assert config.transcode_concurrency == 2
        assert config.fetch_timeout_seconds == 3600.0
        assert config.transcode_timeout_seconds == 7200.0
        assert config.cancel_grace_seconds == 5.0
        assert config.fetch_max_attempts == 3
        assert config.retry_backoff_seconds == 5.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"fetch_concurrency": 0},
            {"transcode_concurrency": 0},
            {"fetch_timeout_seconds": 0},
            {"transcode_timeout_seconds": -1},
            {"cancel_grace_seconds": -0.1},
            {"fetch_max_attempts": 0},
            {"retry_backoff_seconds": -1},
            {"min_free_space_mb": -1},
            {"notify_interval_seconds": -1},
        ],
    )
    def test_rejects_invalid(self, kwargs):
        with pytest.raises(ValueError):
            JobsConfig(**kwargs)

    def test_zero_values_allowed_where_meaningful(self):
        config = JobsConfig(
            cancel_grace_seconds=0,
            retry_backoff_seconds=0,
            min_free_space_mb=0,
            notify_interval_seconds=0,
        )
        assert config.min_free_space_mb == 0


class TestServerConfig:
    def test_defaults(self):
        config = ServerConfig()
        assert (config.bind, config.port) == ("127.0.0.1", 8765)

    @pytest.mark.parametrize("port", [0, 70000])
    def test_port_range(self, port):
        with pytest.raises(ValueError):
            ServerConfig(port=port)

    def test_shutdown_timeout_positive(self):
        with pytest.raises(ValueError):
            ServerConfig(shutdown_timeout=0)


class TestLoggingConfig:
    def test_level_case_insensitive(self):
        assert LoggingConfig(level="DEBUG").level == "DEBUG"

    @pytest.mark.parametrize("kwargs", [{"level": "loud"}, {"format": "xml"}])
    def test_rejects_invalid(self, kwargs):
        with pytest.raises(ValueError):
            LoggingConfig(**kwargs)


def test_mediaforge_config_sections():
    config = MediaForgeConfig()
    assert config.tools.ytdlp is None
    assert config.download_dir.name == "Downloads"
