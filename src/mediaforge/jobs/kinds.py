"""Job kinds: what differs between a fetch and a transcode.

The executor drives every job the same way; a MediaJob supplies the
per-kind pieces: tool name, argument vector, progress parser, run policy
(timeout, attempts, backoff), output finalization and cleanup.
"""

from __future__ import annotations

import glob
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from mediaforge.config.models import JobsConfig
from mediaforge.domain.enums import JobKind
from mediaforge.jobs.exceptions import (
    JobRuntimeError,
    MediaForgeError,
    ResourceError,
)
from mediaforge.jobs.requests import FetchRequest, JobSpec, TranscodeRequest
from mediaforge.tools.detection import FFMPEG, YTDLP
from mediaforge.tools.ffmpeg_progress import DurationRatioParser
from mediaforge.tools.models import ProgressUpdate
from mediaforge.tools.progress import ProgressParser
from mediaforge.tools.ytdlp_progress import DiscreteFieldParser

logger = logging.getLogger(__name__)

# stderr fragments that mean the local disk is full
_DISK_FULL_MARKERS = ("no space left on device", "disk full", "disk quota exceeded")
# Local write failures only; remote "Access Denied" or HTTP 403 replies are
# ordinary download errors
_PERMISSION_MARKERS = (
    "[errno 13] permission denied",
    ": permission denied",
    "read-only file system",
)

# Partial artifacts yt-dlp leaves next to a destination
_PARTIAL_SUFFIXES = (".part", ".ytdl", ".temp")

TEMP_MARKER = ".mediaforge-tmp"


@dataclass(frozen=True)
class RunPolicy:
    """Execution limits for one job."""

    timeout: float
    max_attempts: int = 1
    backoff: float = 0.0


def classify_failure(
    tool: str, returncode: int | None, stderr_tail: list[str]
) -> MediaForgeError:
    """Turn a nonzero exit into the matching error.

    Disk-full and permission problems are ResourceErrors (never retried);
    anything else is a JobRuntimeError.
    """
    tail_text = "\n".join(stderr_tail)
    lowered = tail_text.casefold()
    last_line = stderr_tail[-1].strip() if stderr_tail else ""

    if any(marker in lowered for marker in _DISK_FULL_MARKERS):
        return ResourceError(
            f"{tool} ran out of disk space. Free some space in the output "
            "directory and try again."
        )
    if any(marker in lowered for marker in _PERMISSION_MARKERS):
        return ResourceError(
            f"{tool} could not write its output (permission denied or read-only). "
            "Choose a writable output directory."
        )

    message = f"{tool} exited with code {returncode}"
    if last_line:
        message = f"{message}: {last_line}"
    return JobRuntimeError(message, exit_code=returncode, stderr_tail=tail_text)


class MediaJob:
    """Base class for the per-kind parts of a job."""

    kind: JobKind
    tool: str

    def __init__(self, spec: JobSpec, policy: RunPolicy) -> None:
        self.spec = spec
        self.policy = policy

    @property
    def display_name(self) -> str:
        return self.spec.display_name

    @property
    def output_dir(self) -> Path:
        raise NotImplementedError

    def build_argv(self, binary: Path) -> list[str]:
        raise NotImplementedError

    def create_parser(self) -> ProgressParser:
        raise NotImplementedError

    def observe(self, update: ProgressUpdate) -> None:
        """Record anything the job needs from a progress update."""

    def finalize(self) -> str | None:
        """Complete a successful run and return the output location."""
        return None

    def cleanup(self) -> None:
        """Delete partial output after failure, cancellation or timeout."""

    def classify_failure(
        self, returncode: int | None, stderr_tail: list[str]
    ) -> MediaForgeError:
        return classify_failure(self.tool, returncode, stderr_tail)


class FetchJob(MediaJob):
    """yt-dlp download of one URL (or playlist)."""

    kind = JobKind.FETCH
    tool = YTDLP

    def __init__(self, spec: FetchRequest, policy: RunPolicy, output_dir: Path):
        super().__init__(spec, policy)
        self.request = spec
        self._output_dir = output_dir
        self.destinations: list[str] = []

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def build_argv(self, binary: Path) -> list[str]:
        request = self.request
        argv = [
            str(binary),
            "--newline",
            "--progress",
            "-o",
            str(self._output_dir / "%(title)s.%(ext)s"),
        ]

        if request.media_format == "mp3":
            argv += ["-x", "--audio-format", "mp3"]
            if request.audio_quality:
                argv += ["--audio-quality", request.audio_quality]
        else:
            if request.quality and request.quality != "best":
                q = request.quality
                argv += ["-f", f"bestvideo[height<={q}]+bestaudio/best[height<={q}]"]
            else:
                argv += ["-f", "bestvideo+bestaudio/best"]
            argv += ["--merge-output-format", "mp4"]

        if request.trim is not None:
            argv += ["--download-sections", f"*{request.trim.start}-{request.trim.end}"]

        argv.append("--yes-playlist" if request.playlist else "--no-playlist")
        argv += ["--", request.url]
        return argv

    def create_parser(self) -> DiscreteFieldParser:
        return DiscreteFieldParser()

    def observe(self, update: ProgressUpdate) -> None:
        if update.destination and update.destination not in self.destinations:
            self.destinations.append(update.destination)

    def finalize(self) -> str | None:
        for destination in reversed(self.destinations):
            if Path(destination).exists():
                return destination
        return self.destinations[-1] if self.destinations else None

    def cleanup(self) -> None:
        for destination in self.destinations:
            base = Path(destination)
            candidates = [Path(f"{destination}{s}") for s in _PARTIAL_SUFFIXES]
            pattern = f"{glob.escape(base.name)}.part-Frag*"
            candidates += list(base.parent.glob(pattern))
            for candidate in candidates:
                _unlink_quietly(candidate)


class TranscodeJob(MediaJob):
    """ffmpeg conversion of one local file.

    Output goes to a hidden temporary file next to the final path and is
    renamed into place only when ffmpeg succeeds.
    """

    kind = JobKind.TRANSCODE
    tool = FFMPEG

    def __init__(self, spec: TranscodeRequest, policy: RunPolicy) -> None:
        super().__init__(spec, policy)
        self.request = spec

    @property
    def output_dir(self) -> Path:
        return self.request.resolved_output_dir

    @property
    def output_path(self) -> Path:
        return self.request.output_path

    @property
    def temp_path(self) -> Path:
        final = self.output_path
        return final.with_name(f".{final.stem}{TEMP_MARKER}{final.suffix}")

    def build_argv(self, binary: Path) -> list[str]:
        request = self.request
        argv = [str(binary), "-hide_banner", "-nostdin", "-i", str(request.input_file)]

        video = request.video
        audio = request.audio
        if request.conversion_type == "audio":
            argv.append("-vn")
        elif video is not None:
            if video.resolution:
                argv += ["-s", video.resolution]
            if video.bitrate and request.conversion_type == "video":
                argv += ["-b:v", video.bitrate]

        if audio is not None and request.conversion_type != "image":
            if audio.bitrate:
                bitrate = audio.bitrate
                argv += ["-b:a", f"{bitrate}k" if bitrate.isdigit() else bitrate]
            if audio.sample_rate:
                argv += ["-ar", str(audio.sample_rate)]

        argv += ["-progress", "pipe:1", "-nostats", "-y", str(self.temp_path)]
        return argv

    def create_parser(self) -> DurationRatioParser:
        return DurationRatioParser()

    def finalize(self) -> str:
        temp = self.temp_path
        if not temp.exists():
            raise JobRuntimeError(
                f"{self.tool} reported success but wrote no output", exit_code=0
            )
        os.replace(temp, self.output_path)
        return str(self.output_path)

    def cleanup(self) -> None:
        _unlink_quietly(self.temp_path)


def _unlink_quietly(path: Path) -> None:
    try:
        path.unlink()
        logger.debug("Removed partial output %s", path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove partial output %s: %s", path, e)


def build_job(spec: JobSpec, config: JobsConfig, download_dir: Path) -> MediaJob:
    """Create the MediaJob for a validated request.

    Args:
        spec: Validated FetchRequest or TranscodeRequest.
        config: Engine limits (timeouts, attempts, backoff).
        download_dir: Output directory for fetches that do not name one.
    """
    if isinstance(spec, FetchRequest):
        policy = RunPolicy(
            timeout=config.fetch_timeout_seconds,
            max_attempts=config.fetch_max_attempts,
            backoff=config.retry_backoff_seconds,
        )
        return FetchJob(spec, policy, spec.output_dir or download_dir)
    if isinstance(spec, TranscodeRequest):
        policy = RunPolicy(timeout=config.transcode_timeout_seconds)
        return TranscodeJob(spec, policy)
    raise TypeError(f"Unsupported job spec: {type(spec).__name__}")
