"""Pydantic models for job requests.

A job spec is either a FetchRequest (network source via yt-dlp) or a
TranscodeRequest (local file via ffmpeg). Models are validated on
construction; ``parse_job_spec`` converts plain dicts (HTTP bodies, batch
files) and maps pydantic errors onto the engine's ValidationError.
"""

import re
from pathlib import Path
from typing import Any, ClassVar, Literal

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from mediaforge.core.validation import (
    parse_timestamp,
    sanitize_path,
    validate_input_file,
    validate_source_url,
)
from mediaforge.domain.enums import JobKind
from mediaforge.jobs.exceptions import ValidationError

_BITRATE_RE = re.compile(r"^\d+(?:\.\d+)?[kKmM]?$")
_RESOLUTION_RE = re.compile(r"^\d{2,5}x\d{2,5}$")
_FORMAT_RE = re.compile(r"^[a-z0-9]{2,5}$")
_AUDIO_QUALITY_RE = re.compile(r"^(?:\d|10|\d{2,3}[kK])$")

VALID_SAMPLE_RATES = frozenset(
    (8000, 11025, 16000, 22050, 32000, 44100, 48000, 88200, 96000, 192000)
)


def _check_bitrate(v: str | None) -> str | None:
    if v is not None and not _BITRATE_RE.match(v):
        raise ValueError(
            f"Invalid bitrate '{v}'. "
            "Must be a number optionally followed by k or M (e.g., '2500k', '5M')."
        )
    return v


class TrimModel(BaseModel):
    """Section of the source to keep, as timestamps."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    start: str = "0"
    end: str

    @field_validator("start", "end")
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        """Validate timestamp format."""
        parse_timestamp(v)
        return v.strip()

    @model_validator(mode="after")
    def validate_order(self) -> "TrimModel":
        """Validate that the section is not empty."""
        if parse_timestamp(self.end) <= parse_timestamp(self.start):
            raise ValueError("trim end must be after trim start")
        return self


class FetchRequest(BaseModel):
    """Request to fetch one network source with yt-dlp."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: ClassVar[JobKind] = JobKind.FETCH

    url: str
    output_dir: Path | None = None
    media_format: Literal["mp4", "mp3"] = "mp4"
    quality: str | None = None
    audio_quality: str | None = None
    trim: TrimModel | None = None
    playlist: bool = False
    name: str | None = Field(default=None, max_length=200)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Reject non-http(s) URLs and injection characters."""
        return validate_source_url(v)

    @field_validator("output_dir")
    @classmethod
    def validate_output_dir(cls, v: Path | None) -> Path | None:
        """Normalize and sanitize the output directory."""
        return sanitize_path(v) if v is not None else None

    @field_validator("quality")
    @classmethod
    def validate_quality(cls, v: str | None) -> str | None:
        """Accept 'best' or a maximum height such as '720' or '1080p'."""
        if v is None:
            return None
        v = v.strip().casefold()
        if v == "best":
            return v
        height = v[:-1] if v.endswith("p") else v
        if not height.isdigit() or not 144 <= int(height) <= 4320:
            raise ValueError(
                f"Invalid quality '{v}'. Use 'best' or a height like '720' or '1080p'."
            )
        return height

    @field_validator("audio_quality")
    @classmethod
    def validate_audio_quality(cls, v: str | None) -> str | None:
        """Accept a VBR level 0-10 or a bitrate like '192K'."""
        if v is not None and not _AUDIO_QUALITY_RE.match(v.strip()):
            raise ValueError(
                f"Invalid audio_quality '{v}'. Use 0-10 or a bitrate like '192K'."
            )
        return v.strip() if v is not None else None

    @property
    def display_name(self) -> str:
        return self.name or self.url


class VideoSettingsModel(BaseModel):
    """Video encoding settings for transcodes."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    resolution: str | None = None
    bitrate: str | None = None

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v: str | None) -> str | None:
        """Validate WIDTHxHEIGHT."""
        if v is not None and not _RESOLUTION_RE.match(v):
            raise ValueError(
                f"Invalid resolution '{v}'. Use WIDTHxHEIGHT, e.g. 1280x720."
            )
        return v

    @field_validator("bitrate")
    @classmethod
    def validate_bitrate(cls, v: str | None) -> str | None:
        """Validate bitrate format."""
        return _check_bitrate(v)


class AudioSettingsModel(BaseModel):
    """Audio encoding settings for transcodes."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    bitrate: str | None = None
    sample_rate: int | None = None

    @field_validator("bitrate")
    @classmethod
    def validate_bitrate(cls, v: str | None) -> str | None:
        """Validate bitrate format."""
        return _check_bitrate(v)

    @field_validator("sample_rate")
    @classmethod
    def validate_sample_rate(cls, v: int | None) -> int | None:
        """Validate against common sample rates."""
        if v is not None and v not in VALID_SAMPLE_RATES:
            raise ValueError(
                f"Invalid sample_rate {v}. "
                f"Must be one of: {sorted(VALID_SAMPLE_RATES)}"
            )
        return v


class TranscodeRequest(BaseModel):
    """Request to transcode one local file with ffmpeg."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: ClassVar[JobKind] = JobKind.TRANSCODE

    input_file: Path
    output_format: str
    output_dir: Path | None = None
    conversion_type: Literal["video", "audio", "image"] = "video"
    video: VideoSettingsModel | None = None
    audio: AudioSettingsModel | None = None
    name: str | None = Field(default=None, max_length=200)

    @field_validator("input_file")
    @classmethod
    def validate_input(cls, v: Path) -> Path:
        """The input must be an existing, non-executable regular file."""
        return validate_input_file(v)

    @field_validator("output_dir")
    @classmethod
    def validate_output_dir(cls, v: Path | None) -> Path | None:
        """Normalize and sanitize the output directory."""
        return sanitize_path(v) if v is not None else None

    @field_validator("output_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Output format is a bare container extension such as 'mkv'."""
        v = v.strip().lstrip(".").casefold()
        if not _FORMAT_RE.match(v):
            raise ValueError(f"Invalid output_format '{v}'")
        return v

    @model_validator(mode="after")
    def validate_not_in_place(self) -> "TranscodeRequest":
        """Refuse to overwrite the input file."""
        if self.output_path == self.input_file:
            raise ValueError("Output would overwrite the input file")
        return self

    @property
    def resolved_output_dir(self) -> Path:
        return self.output_dir or self.input_file.parent

    @property
    def output_path(self) -> Path:
        return self.resolved_output_dir / f"{self.input_file.stem}.{self.output_format}"

    @property
    def display_name(self) -> str:
        return self.name or self.input_file.name


JobSpec = FetchRequest | TranscodeRequest

_SPEC_MODELS: dict[str, type[BaseModel]] = {
    JobKind.FETCH.value: FetchRequest,
    JobKind.TRANSCODE.value: TranscodeRequest,
}


def _error_details(exc: pydantic.ValidationError) -> list[dict[str, Any]]:
    return [
        {
            "field": ".".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]


def build_request(model: type[BaseModel], data: dict[str, Any]) -> JobSpec:
    """Validate ``data`` against a request model.

    Raises:
        ValidationError: With field-level details if validation fails.
    """
    try:
        return model.model_validate(data)  # type: ignore[return-value]
    except pydantic.ValidationError as e:
        details = _error_details(e)
        summary = "; ".join(f"{d['field']}: {d['message']}" for d in details)
        raise ValidationError(f"Invalid {model.__name__}: {summary}", details) from e


def parse_job_spec(data: dict[str, Any]) -> JobSpec:
    """Build a job spec from a dict with a ``kind`` discriminator.

    Example:
        parse_job_spec({"kind": "fetch", "url": "https://example.com/v"})

    Raises:
        ValidationError: If the kind is unknown or the fields are invalid.
    """
    if not isinstance(data, dict):
        raise ValidationError("Job spec must be a mapping")
    payload = dict(data)
    kind = payload.pop("kind", None)
    model = _SPEC_MODELS.get(str(kind).casefold()) if kind is not None else None
    if model is None:
        raise ValidationError(
            f"Unknown job kind {kind!r}. Must be one of: {', '.join(_SPEC_MODELS)}"
        )
    return build_request(model, payload)
