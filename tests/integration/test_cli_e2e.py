"""Run the CLI the way a user would, against fake tools."""

import json
import sys

import pytest
from click.testing import CliRunner

from mediaforge.cli import main
from mediaforge.cli.exit_codes import ExitCode

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(sys.platform == "win32", reason="POSIX process groups"),
]


@pytest.fixture(autouse=True)
def _environment(monkeypatch, tmp_path, fake_tools, output_dir):
    monkeypatch.setattr("mediaforge.cli._configure_logging", lambda *args: None)
    monkeypatch.setenv("MEDIAFORGE_CONFIG_PATH", str(tmp_path / "absent.toml"))
    monkeypatch.setenv("MEDIAFORGE_YTDLP_PATH", str(fake_tools.ytdlp))
    monkeypatch.setenv("MEDIAFORGE_FFMPEG_PATH", str(fake_tools.ffmpeg))
    monkeypatch.setenv("MEDIAFORGE_DOWNLOAD_DIR", str(output_dir))
    monkeypatch.setenv("MEDIAFORGE_MIN_FREE_SPACE_MB", "0")


def test_fetch_then_transcode(tmp_path, output_dir):
    runner = CliRunner()
    result = runner.invoke(
        main, ["fetch", "--json", "--format", "mp4", "https://example.com/v/1"]
    )
    assert result.exit_code == ExitCode.SUCCESS, result.output
    [task] = json.loads(result.stdout)
    downloaded = output_dir / "Sample Video.mp4"
    assert task["output_path"] == str(downloaded)

    converted = tmp_path / "converted"
    result = runner.invoke(
        main,
        ["transcode", "--to", "webm", "-o", str(converted), str(downloaded)],
    )
    assert result.exit_code == ExitCode.SUCCESS, result.output
    assert (converted / "Sample Video.webm").exists()
    assert "1/1 task(s) completed" in result.output
