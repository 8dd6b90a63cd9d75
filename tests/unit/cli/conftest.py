"""Fixtures for CLI tests."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from mediaforge.config.loader import clear_config_cache


@pytest.fixture(autouse=True)
def isolated_cli(monkeypatch, tmp_path: Path):
    """Keep CLI runs away from the real home, environment and logging."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for name in (
        "MEDIAFORGE_CONFIG_PATH",
        "MEDIAFORGE_YTDLP_PATH",
        "MEDIAFORGE_FFMPEG_PATH",
        "MEDIAFORGE_DOWNLOAD_DIR",
        "MEDIAFORGE_MIN_FREE_SPACE_MB",
        "MEDIAFORGE_FETCH_MAX_ATTEMPTS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MEDIAFORGE_CONFIG_PATH", str(tmp_path / "absent.toml"))
    monkeypatch.setattr("mediaforge.cli._configure_logging", lambda *args: None)
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def write_config(tmp_path: Path, fake_tools, output_dir):
    """Return a function writing a config.toml for the fake tools."""

    def write(ffmpeg: Path | None = None, **jobs) -> Path:
        settings = {
            "cancel_grace_seconds": 0.5,
            "retry_backoff_seconds": 0.05,
            "min_free_space_mb": 0,
            **jobs,
        }
        lines = [
            f'download_dir = "{output_dir}"',
            "",
            "[tools]",
            f'ytdlp = "{fake_tools.ytdlp}"',
            f'ffmpeg = "{ffmpeg or fake_tools.ffmpeg}"',
            "",
            "[jobs]",
        ]
        lines += [f"{key} = {value}" for key, value in settings.items()]
        path = tmp_path / "config.toml"
        path.write_text("\n".join(lines) + "\n")
        return path

    return write
