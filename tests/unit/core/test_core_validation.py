"""Tests for input validation helpers."""

from pathlib import Path

import pytest

from mediaforge.core.validation import (
    parse_timestamp,
    sanitize_path,
    validate_input_file,
    validate_source_url,
)


class TestValidateSourceUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ&list=PL1",
            "http://example.org/video.mp4",
            "  https://vimeo.com/123  ",
        ],
    )
    def test_accepts(self, url):
        assert validate_source_url(url) == url.strip()

    @pytest.mark.parametrize(
        ("url", "message"),
        [
            ("file:///etc/passwd", "scheme not allowed"),
            ("data:text/html,hi", "scheme not allowed"),
            ("rtmp://example.com/live", "must start with"),
            ("https://", "no host"),
            ("https://example.com/`id`", "malicious"),
            ("https://example.com/a\nb", "malicious"),
            ("   ", "empty"),
        ],
    )
    def test_rejects(self, url, message):
        with pytest.raises(ValueError, match=message):
            validate_source_url(url)


class TestSanitizePath:
    def test_expands_home(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert sanitize_path("~/Videos") == tmp_path / "Videos"

    def test_relative_made_absolute(self, monkeypatch, tmp_path: Path):
        monkeypatch.chdir(tmp_path)
        assert sanitize_path("out") == tmp_path / "out"

    @pytest.mark.parametrize(
        ("raw", "message"),
        [
            ("", "empty"),
            ("/tmp/../etc", "traversal"),
            ("/tmp//x", "double separators"),
            ("/etc", "system"),
            ("/proc/self", "system"),
            ("/home/user/.ssh/keys", "system"),
        ],
    )
    def test_rejects(self, raw, message):
        with pytest.raises(ValueError, match=message):
            sanitize_path(raw)

    def test_prefix_match_is_per_component(self, tmp_path: Path):
        # /etcetera is not /etc
        assert sanitize_path("/etcetera/videos") == Path("/etcetera/videos")


class TestValidateInputFile:
    def test_accepts_media(self, input_video: Path):
        assert validate_input_file(str(input_video)) == input_video

    def test_missing(self, tmp_path: Path):
        with pytest.raises(ValueError, match="does not exist"):
            validate_input_file(tmp_path / "nope.mp4")

    def test_directory(self, tmp_path: Path):
        with pytest.raises(ValueError, match="not a file"):
            validate_input_file(tmp_path)

    @pytest.mark.parametrize("name", ["install.sh", "tool.EXE", "lib.so"])
    def test_blocked_extensions(self, tmp_path: Path, name):
        path = tmp_path / name
        path.write_text("x")
        with pytest.raises(ValueError, match="not allowed"):
            validate_input_file(path)


class TestParseTimestamp:
    @pytest.mark.parametrize(
        ("value", "seconds"),
        [("45", 45.0), ("1:30", 90.0), ("01:02:03", 3723.0), ("0:00:01.5", 1.5)],
    )
    def test_parses(self, value, seconds):
        assert parse_timestamp(value) == pytest.approx(seconds)

    @pytest.mark.parametrize("value", ["", "1:2:3:4", "abc", "-5", "1:300"])
    def test_rejects(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)
