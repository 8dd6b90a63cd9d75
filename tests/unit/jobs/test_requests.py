"""Tests for job request models."""

from pathlib import Path

import pytest

from mediaforge.domain.enums import JobKind
from mediaforge.jobs.exceptions import ValidationError
from mediaforge.jobs.requests import (
    FetchRequest,
    TranscodeRequest,
    build_request,
    parse_job_spec,
)


def _fields(exc: ValidationError) -> set[str]:
    return {err["field"] for err in exc.errors}


class TestFetchRequest:
    """Tests for FetchRequest validation."""

    def test_defaults(self):
        request = build_request(FetchRequest, {"url": "https://example.com/v?a=1&b=2"})
        assert request.kind is JobKind.FETCH
        assert request.media_format == "mp4"
        assert request.playlist is False
        assert request.display_name == "https://example.com/v?a=1&b=2"

    @pytest.mark.parametrize(
        "url",
        [
            "ftp://example.com/file",
            "file:///etc/passwd",
            "javascript:alert(1)",
            "example.com/video",
            "https://example.com/$(rm -rf)",
            "https://example.com/a;b",
            "",
        ],
    )
    def test_rejects_bad_urls(self, url):
        with pytest.raises(ValidationError) as exc_info:
            build_request(FetchRequest, {"url": url})
        assert "url" in _fields(exc_info.value)

    def test_quality_normalized(self):
        request = FetchRequest(url="https://example.com/v", quality="1080p")
        assert request.quality == "1080"
        assert FetchRequest(url="https://example.com/v", quality="BEST").quality == (
            "best"
        )

    @pytest.mark.parametrize("quality", ["99", "8k", "100000"])
    def test_rejects_bad_quality(self, quality):
        with pytest.raises(ValidationError):
            build_request(FetchRequest, {"url": "https://e.com/v", "quality": quality})

    def test_audio_quality(self):
        assert FetchRequest(url="https://e.com/v", audio_quality="192K").audio_quality
        with pytest.raises(ValidationError):
            build_request(
                FetchRequest, {"url": "https://e.com/v", "audio_quality": "loud"}
            )

    def test_trim_must_not_be_empty(self):
        with pytest.raises(ValidationError):
            build_request(
                FetchRequest,
                {"url": "https://e.com/v", "trim": {"start": "1:00", "end": "0:30"}},
            )

    def test_trim_rejects_garbage_timestamp(self):
        with pytest.raises(ValidationError):
            build_request(
                FetchRequest, {"url": "https://e.com/v", "trim": {"end": "soon"}}
            )

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            build_request(FetchRequest, {"url": "https://e.com/v", "colour": "red"})
        assert "colour" in _fields(exc_info.value)

    def test_output_dir_traversal_rejected(self):
        with pytest.raises(ValidationError):
            build_request(
                FetchRequest, {"url": "https://e.com/v", "output_dir": "/tmp/../etc"}
            )


class TestTranscodeRequest:
    """Tests for TranscodeRequest validation."""

    def test_output_path_next_to_input(self, input_video: Path):
        request = TranscodeRequest(input_file=input_video, output_format=".MP4")
        assert request.output_format == "mp4"
        assert request.output_path == input_video.with_suffix(".mp4")
        assert request.display_name == "clip.mkv"

    def test_output_dir(self, input_video: Path, tmp_path: Path):
        out = tmp_path / "converted"
        request = TranscodeRequest(
            input_file=input_video, output_format="mp3", output_dir=out
        )
        assert request.output_path == out / "clip.mp3"

    def test_refuses_in_place(self, input_video: Path):
        with pytest.raises(ValidationError, match="overwrite"):
            build_request(
                TranscodeRequest,
                {"input_file": str(input_video), "output_format": "mkv"},
            )

    def test_missing_input(self, tmp_path: Path):
        with pytest.raises(ValidationError) as exc_info:
            build_request(
                TranscodeRequest,
                {"input_file": str(tmp_path / "gone.mkv"), "output_format": "mp4"},
            )
        assert "input_file" in _fields(exc_info.value)

    def test_script_input_rejected(self, tmp_path: Path):
        script = tmp_path / "run.sh"
        script.write_text("echo hi")
        with pytest.raises(ValidationError):
            build_request(
                TranscodeRequest, {"input_file": str(script), "output_format": "mp4"}
            )

    @pytest.mark.parametrize(
        ("section", "value"),
        [
            ("video", {"resolution": "big"}),
            ("video", {"bitrate": "fast"}),
            ("audio", {"bitrate": "128kbps"}),
            ("audio", {"sample_rate": 12345}),
        ],
    )
    def test_encoding_settings_validated(self, input_video: Path, section, value):
        with pytest.raises(ValidationError):
            build_request(
                TranscodeRequest,
                {
                    "input_file": str(input_video),
                    "output_format": "mp4",
                    section: value,
                },
            )

    def test_bad_output_format(self, input_video: Path):
        with pytest.raises(ValidationError):
            build_request(
                TranscodeRequest,
                {"input_file": str(input_video), "output_format": "m p 4"},
            )


class TestParseJobSpec:
    def test_fetch(self):
        spec = parse_job_spec({"kind": "fetch", "url": "https://e.com/v"})
        assert isinstance(spec, FetchRequest)

    def test_transcode(self, input_video: Path):
        spec = parse_job_spec(
            {
                "kind": "TRANSCODE",
                "input_file": str(input_video),
                "output_format": "mp4",
            }
        )
        assert isinstance(spec, TranscodeRequest)

    @pytest.mark.parametrize("data", [{"url": "https://e.com"}, {"kind": "burn"}])
    def test_unknown_kind(self, data):
        with pytest.raises(ValidationError, match="Unknown job kind"):
            parse_job_spec(data)

    def test_not_a_mapping(self):
        with pytest.raises(ValidationError):
            parse_job_spec(["fetch"])

    def test_caller_dict_untouched(self):
        data = {"kind": "fetch", "url": "https://e.com/v"}
        parse_job_spec(data)
        assert data["kind"] == "fetch"
