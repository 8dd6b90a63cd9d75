"""Tests for per-kind job behaviour."""

from pathlib import Path

import pytest

from mediaforge.config.models import JobsConfig
from mediaforge.jobs.exceptions import JobRuntimeError, ResourceError
from mediaforge.jobs.kinds import (
    TEMP_MARKER,
    FetchJob,
    TranscodeJob,
    build_job,
    classify_failure,
)
from mediaforge.jobs.requests import FetchRequest, TranscodeRequest
from mediaforge.tools.models import ProgressUpdate

BINARY = Path("/usr/bin/tool")


def _fetch_job(tmp_path: Path, **fields) -> FetchJob:
    request = FetchRequest(url="https://example.com/watch?v=abc", **fields)
    job = build_job(request, JobsConfig(), tmp_path)
    assert isinstance(job, FetchJob)
    return job


class TestClassifyFailure:
    def test_generic_failure(self):
        error = classify_failure("yt-dlp", 1, ["WARNING: x", "ERROR: Unsupported URL"])
        assert isinstance(error, JobRuntimeError)
        assert error.exit_code == 1
        assert str(error) == "yt-dlp exited with code 1: ERROR: Unsupported URL"
        assert "WARNING: x" in error.stderr_tail

    def test_no_stderr(self):
        assert str(classify_failure("ffmpeg", 2, [])) == "ffmpeg exited with code 2"

    def test_disk_full(self):
        error = classify_failure(
            "ffmpeg", 1, ["av_interleaved_write_frame(): No space left on device"]
        )
        assert isinstance(error, ResourceError)

    @pytest.mark.parametrize(
        "line",
        [
            "ERROR: unable to open for writing: Permission denied",
            "ERROR: [Errno 13] Permission denied: '/srv/out/clip.mp4.part'",
            "/mnt/media/clip.mp4: Read-only file system",
        ],
    )
    def test_local_write_failure(self, line):
        error = classify_failure("yt-dlp", 1, [line])
        assert isinstance(error, ResourceError)

    @pytest.mark.parametrize(
        "line",
        [
            "ERROR: [generic] Unable to download webpage: HTTP Error 403: Forbidden",
            "ERROR: unable to download video data: Access Denied",
        ],
    )
    def test_remote_denial_is_retryable(self, line):
        error = classify_failure("yt-dlp", 1, [line])
        assert isinstance(error, JobRuntimeError)


class TestFetchJob:
    """Tests for yt-dlp argument vectors and output handling."""

    def test_default_argv(self, tmp_path: Path):
        argv = _fetch_job(tmp_path).build_argv(BINARY)
        assert argv[:3] == [str(BINARY), "--newline", "--progress"]
        assert argv[argv.index("-o") + 1] == str(tmp_path / "%(title)s.%(ext)s")
        assert argv[argv.index("-f") + 1] == "bestvideo+bestaudio/best"
        assert "--no-playlist" in argv
        assert argv[-2:] == ["--", "https://example.com/watch?v=abc"]

    def test_quality_cap(self, tmp_path: Path):
        argv = _fetch_job(tmp_path, quality="720").build_argv(BINARY)
        assert (
            argv[argv.index("-f") + 1]
            == "bestvideo[height<=720]+bestaudio/best[height<=720]"
        )

    def test_audio_only(self, tmp_path: Path):
        job = _fetch_job(tmp_path, media_format="mp3", audio_quality="192K")
        argv = job.build_argv(BINARY)
        assert argv[argv.index("--audio-format") + 1] == "mp3"
        assert argv[argv.index("--audio-quality") + 1] == "192K"
        assert "-x" in argv
        assert "-f" not in argv

    def test_trim_and_playlist(self, tmp_path: Path):
        argv = _fetch_job(
            tmp_path, trim={"start": "0:30", "end": "1:45"}, playlist=True
        ).build_argv(BINARY)
        assert argv[argv.index("--download-sections") + 1] == "*0:30-1:45"
        assert "--yes-playlist" in argv

    def test_request_output_dir_wins(self, tmp_path: Path):
        target = tmp_path / "elsewhere"
        job = _fetch_job(tmp_path, output_dir=target)
        assert job.output_dir == target

    def test_finalize_prefers_existing_destination(self, tmp_path: Path):
        job = _fetch_job(tmp_path)
        merged = tmp_path / "clip.mp4"
        merged.write_text("x")
        job.observe(ProgressUpdate(destination=str(merged)))
        job.observe(ProgressUpdate(destination=str(tmp_path / "clip.f137.mp4")))
        assert job.finalize() == str(merged)

    def test_finalize_without_destination(self, tmp_path: Path):
        assert _fetch_job(tmp_path).finalize() is None

    def test_cleanup_removes_partials_only(self, tmp_path: Path):
        job = _fetch_job(tmp_path)
        dest = tmp_path / "clip.mp4"
        job.observe(ProgressUpdate(destination=str(dest)))
        partials = [
            tmp_path / "clip.mp4.part",
            tmp_path / "clip.mp4.ytdl",
            tmp_path / "clip.mp4.part-Frag3",
        ]
        for path in partials:
            path.write_text("x")
        unrelated = tmp_path / "other.mp4.part"
        unrelated.write_text("x")

        job.cleanup()

        assert not any(p.exists() for p in partials)
        assert unrelated.exists()


class TestTranscodeJob:
    """Tests for ffmpeg argument vectors and temp-file handling."""

    def _job(self, input_video: Path, **fields) -> TranscodeJob:
        request = TranscodeRequest(input_file=input_video, **fields)
        job = build_job(request, JobsConfig(), Path("/unused"))
        assert isinstance(job, TranscodeJob)
        return job

    def test_temp_path_is_hidden_sibling(self, input_video: Path):
        job = self._job(input_video, output_format="mp4")
        assert job.temp_path.parent == job.output_path.parent
        assert job.temp_path.name == f".clip{TEMP_MARKER}.mp4"

    def test_video_argv(self, input_video: Path):
        job = self._job(
            input_video,
            output_format="mp4",
            video={"resolution": "1280x720", "bitrate": "2M"},
            audio={"bitrate": "192", "sample_rate": 48000},
        )
        argv = job.build_argv(BINARY)
        assert argv[argv.index("-i") + 1] == str(input_video)
        assert argv[argv.index("-s") + 1] == "1280x720"
        assert argv[argv.index("-b:v") + 1] == "2M"
        assert argv[argv.index("-b:a") + 1] == "192k"
        assert argv[argv.index("-ar") + 1] == "48000"
        assert argv[argv.index("-progress") + 1] == "pipe:1"
        assert argv[-1] == str(job.temp_path)

    def test_audio_argv_drops_video(self, input_video: Path):
        job = self._job(
            input_video,
            output_format="mp3",
            conversion_type="audio",
            video={"resolution": "1280x720"},
        )
        argv = job.build_argv(BINARY)
        assert "-vn" in argv
        assert "-s" not in argv

    def test_image_argv_ignores_audio(self, input_video: Path):
        job = self._job(
            input_video,
            output_format="png",
            conversion_type="image",
            audio={"bitrate": "128k"},
        )
        assert "-b:a" not in job.build_argv(BINARY)

    def test_finalize_renames_temp(self, input_video: Path):
        job = self._job(input_video, output_format="mp4")
        job.temp_path.write_text("converted")
        assert job.finalize() == str(job.output_path)
        assert job.output_path.read_text() == "converted"
        assert not job.temp_path.exists()

    def test_finalize_without_output(self, input_video: Path):
        job = self._job(input_video, output_format="mp4")
        with pytest.raises(JobRuntimeError, match="no output"):
            job.finalize()

    def test_cleanup(self, input_video: Path):
        job = self._job(input_video, output_format="mp4")
        job.temp_path.write_text("half")
        job.cleanup()
        assert not job.temp_path.exists()
        job.cleanup()


class TestBuildJob:
    def test_policies(self, tmp_path: Path, input_video: Path):
        config = JobsConfig(
            fetch_timeout_seconds=10,
            transcode_timeout_seconds=20,
            fetch_max_attempts=4,
            retry_backoff_seconds=1.5,
        )
        fetch = build_job(FetchRequest(url="https://e.com/v"), config, tmp_path)
        assert (fetch.policy.timeout, fetch.policy.max_attempts) == (10, 4)
        assert fetch.policy.backoff == 1.5

        transcode = build_job(
            TranscodeRequest(input_file=input_video, output_format="mp4"),
            config,
            tmp_path,
        )
        assert transcode.policy.timeout == 20
        assert transcode.policy.max_attempts == 1

    def test_unsupported_spec(self, tmp_path: Path):
        with pytest.raises(TypeError):
            build_job(object(), JobsConfig(), tmp_path)
