"""FFmpeg progress parsing utilities.

This module parses FFmpeg's ``-progress pipe:1`` key=value output and its
stderr status lines. Percentage is computed as position / total duration,
where the total comes from the ``Duration:`` line FFmpeg prints for the
input. When no duration is ever seen, percentage stays indeterminate.
"""

from __future__ import annotations

import logging
import re

from mediaforge.tools.models import ProgressUpdate

logger = logging.getLogger(__name__)

DURATION_PATTERN = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2})(?:\.(\d+))?")
STDERR_TIME_PATTERN = re.compile(r"time=\s*(-?\d+):(\d{2}):(\d{2})(?:\.(\d+))?")
STDERR_SPEED_PATTERN = re.compile(r"speed=\s*([^\s]+)")
POSITION_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(us|ms|s)?$")

# Divisor turning a position unit into seconds
_UNIT_DIVISORS = {"us": 1_000_000, "ms": 1_000, "s": 1, None: 1}

# Keys of the -progress output this parser understands
_POSITION_KEYS = frozenset(("out_time_us", "out_time_ms", "out_time", "position"))
_VALID_KEYS = _POSITION_KEYS | frozenset(("speed", "progress"))


def _clock_to_seconds(
    hours: str, minutes: str, seconds: str, fraction: str | None
) -> float:
    """Convert clock components to seconds.

    ``fraction`` is the digit string after the decimal point, so "45" in
    ``00:00:01.45`` means 0.45 seconds regardless of its length.
    """
    total = int(hours) * 3600 + int(minutes) * 60 + int(seconds)
    if fraction:
        total += int(fraction) / (10 ** len(fraction))
    return float(total)


def parse_duration(line: str) -> float | None:
    """Parse total duration in seconds from an FFmpeg ``Duration:`` line.

    Args:
        line: A line from FFmpeg stderr.

    Returns:
        Duration in seconds, or None if the line has no usable duration
        (including ``Duration: N/A``).
    """
    match = DURATION_PATTERN.search(line)
    if not match:
        return None
    return _clock_to_seconds(*match.groups())


def parse_clock(value: str) -> float | None:
    """Parse ``HH:MM:SS[.ffffff]`` into seconds, or None if malformed."""
    parts = value.strip().split(":")
    if len(parts) != 3:
        return None
    sec, _, fraction = parts[2].partition(".")
    if not (parts[0].lstrip("-").isdigit() and parts[1].isdigit() and sec.isdigit()):
        return None
    if fraction and not fraction.isdigit():
        return None
    seconds = _clock_to_seconds(parts[0], parts[1], sec, fraction or None)
    return max(seconds, 0.0)


def parse_progress_line(line: str) -> tuple[str, str] | None:
    """Parse a single ``key=value`` line from FFmpeg progress output.

    Args:
        line: A line from FFmpeg's -progress output.

    Returns:
        (key, value) for keys this module understands, None otherwise.
    """
    line = line.strip()
    if "=" not in line:
        return None
    key, _, value = line.partition("=")
    key = key.strip()
    if key not in _VALID_KEYS:
        return None
    return key, value.strip()


def position_seconds(key: str, value: str) -> float | None:
    """Convert a position key/value pair to seconds.

    FFmpeg reports ``out_time_ms`` in microseconds despite the name, so both
    ``out_time_us`` and ``out_time_ms`` are divided by one million.
    ``position`` carries an explicit unit suffix (``30000ms``, ``30s``).
    """
    if value == "N/A":
        return None
    if key in ("out_time_us", "out_time_ms"):
        try:
            micros = int(value)
        except ValueError:
            return None
        return max(micros, 0) / 1_000_000
    if key == "position":
        match = POSITION_PATTERN.match(value)
        if not match:
            return None
        return float(match.group(1)) / _UNIT_DIVISORS[match.group(2)]
    return parse_clock(value)


class DurationRatioParser:
    """Progress parser for transcode jobs.

    Feed it both stdout (``-progress pipe:1``) and stderr lines. The first
    ``Duration:`` line fixes the total; every later position becomes a
    percentage clamped to 0..100.
    """

    def __init__(self, total_seconds: float | None = None) -> None:
        self.total_seconds = total_seconds

    def _ratio_update(
        self, position: float, speed: str | None = None
    ) -> ProgressUpdate:
        if self.total_seconds is None or self.total_seconds <= 0:
            return ProgressUpdate(speed=speed, indeterminate=True)
        percent = min(100.0, max(0.0, position / self.total_seconds * 100))
        return ProgressUpdate(percent=percent, speed=speed)

    def feed(self, line: str) -> ProgressUpdate | None:
        if self.total_seconds is None:
            duration = parse_duration(line)
            if duration is not None:
                self.total_seconds = duration
                logger.debug("Input duration: %.2fs", duration)
                return None

        parsed = parse_progress_line(line)
        if parsed is not None:
            key, value = parsed
            if key in _POSITION_KEYS:
                position = position_seconds(key, value)
                if position is None:
                    logger.debug("Unparsable progress value: %s", line.strip())
                    return None
                return self._ratio_update(position)
            if key == "speed":
                speed = value if value not in ("", "N/A") else None
                return ProgressUpdate(speed=speed) if speed else None
            return None

        time_match = STDERR_TIME_PATTERN.search(line)
        if time_match:
            position = max(_clock_to_seconds(*time_match.groups()), 0.0)
            speed_match = STDERR_SPEED_PATTERN.search(line)
            speed = speed_match.group(1) if speed_match else None
            if speed == "N/A":
                speed = None
            return self._ratio_update(position, speed)

        logger.debug("Ignoring ffmpeg output line: %s", line.rstrip())
        return None
