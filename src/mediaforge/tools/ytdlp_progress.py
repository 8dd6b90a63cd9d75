"""yt-dlp progress parsing utilities.

yt-dlp run with ``--newline --progress`` prints one status line per update:

    [download]  45.2% of ~ 123.45MiB at    1.23MiB/s ETA 00:45 (frag 3/20)

Percent, speed and ETA are read directly from these lines. Playlist runs
also print ``Downloading item N of M``; percentages are then scaled so the
task reports overall progress instead of restarting at 0 for every item.
"""

from __future__ import annotations

import logging
import re

from mediaforge.tools.models import ProgressUpdate

logger = logging.getLogger(__name__)

DOWNLOAD_LINE_PATTERN = re.compile(
    r"^\[download\]\s+(?P<percent>\d+(?:\.\d+)?)%"
    r"(?:\s+of\s+~?\s*(?P<size>\S+))?"
    r"(?:\s+in\s+\S+)?"
    r"(?:\s+at\s+(?P<speed>Unknown B/s|\S+))?"
    r"(?:\s+ETA\s+(?P<eta>\S+))?"
)
PLAYLIST_ITEM_PATTERN = re.compile(
    r"^\[download\]\s+Downloading (?:item|video) (\d+) of (\d+)"
)
DESTINATION_PATTERNS = (
    re.compile(r"^\[download\]\s+Destination:\s+(?P<path>.+)$"),
    re.compile(r"^\[Merger\]\s+Merging formats into \"(?P<path>.+)\"$"),
    re.compile(r"^\[ExtractAudio\]\s+Destination:\s+(?P<path>.+)$"),
    re.compile(r"^\[download\]\s+(?P<path>.+) has already been downloaded"),
)

_UNKNOWN = frozenset(("Unknown", "Unknown B/s", "N/A"))


def parse_download_line(line: str) -> ProgressUpdate | None:
    """Parse a single ``[download] NN.N%`` line.

    Args:
        line: A line from yt-dlp stdout.

    Returns:
        ProgressUpdate with the fields present on the line, or None if the
        line is not a progress line.
    """
    match = DOWNLOAD_LINE_PATTERN.match(line.strip())
    if not match:
        return None
    try:
        percent = float(match.group("percent"))
    except ValueError:
        return None
    speed = match.group("speed")
    eta = match.group("eta")
    return ProgressUpdate(
        percent=min(100.0, max(0.0, percent)),
        speed=None if speed in _UNKNOWN else speed,
        eta=None if eta in _UNKNOWN else eta,
    )


def parse_destination(line: str) -> str | None:
    """Extract the output file path announced by yt-dlp, if any."""
    stripped = line.strip()
    for pattern in DESTINATION_PATTERNS:
        match = pattern.match(stripped)
        if match:
            return match.group("path").strip()
    return None


class DiscreteFieldParser:
    """Progress parser for fetch jobs."""

    def __init__(self) -> None:
        self.item_index = 1
        self.item_count = 1
        self.destinations: list[str] = []

    def feed(self, line: str) -> ProgressUpdate | None:
        item_match = PLAYLIST_ITEM_PATTERN.match(line.strip())
        if item_match:
            index, count = int(item_match.group(1)), int(item_match.group(2))
            if count > 0 and 1 <= index <= count:
                self.item_index, self.item_count = index, count
            return None

        destination = parse_destination(line)
        if destination is not None:
            if destination not in self.destinations:
                self.destinations.append(destination)
            return ProgressUpdate(destination=destination)

        update = parse_download_line(line)
        if update is None:
            if line.startswith("[download]") and "%" in line:
                logger.debug("Unparsable yt-dlp progress line: %s", line.rstrip())
            return None

        if self.item_count > 1 and update.percent is not None:
            done = (self.item_index - 1) + update.percent / 100
            update.percent = done / self.item_count * 100
        return update
