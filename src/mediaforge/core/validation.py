"""Input validation for job requests.

Pure functions that check URLs, paths and timestamps before a job is ever
registered. All functions raise ValueError with a user-facing message, which
the pydantic request models surface as field errors.
"""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import urlparse

# Schemes that must never reach the fetch tool
_BLOCKED_SCHEMES = frozenset(("file", "javascript", "data", "ftp"))

# Characters rejected in URLs even though argv is never passed to a shell
_BLOCKED_URL_CHARS = frozenset("\n\r;|`$()")

# Prefixes of system locations that jobs may neither read nor write
_SYSTEM_PREFIXES = ("/etc", "/sys", "/proc", "/boot", "/root")
_SYSTEM_SEGMENTS = ("/.ssh/", "/.gnupg/")

# Input extensions that are never media
_BLOCKED_INPUT_EXTENSIONS = frozenset(
    (
        "sh", "bash", "zsh", "fish", "csh",
        "py", "pl", "rb", "php", "js",
        "exe", "com", "bat", "cmd",
        "so", "dylib", "dll",
        "deb", "rpm", "pkg",
    )
)  # fmt: skip

_TIMESTAMP_RE = re.compile(r"^\d+(?::\d{1,2}){0,2}(?:\.\d+)?$")


def validate_source_url(url: str) -> str:
    """Validate a network source URL for the fetch tool.

    Args:
        url: URL as supplied by the caller.

    Returns:
        The stripped URL.

    Raises:
        ValueError: If the scheme is not http(s), the URL has no host, or it
            contains characters that could be used for injection.
    """
    url = url.strip()
    if not url:
        raise ValueError("URL must not be empty")
    if any(ch in _BLOCKED_URL_CHARS for ch in url):
        raise ValueError("URL contains potentially malicious characters")
    parsed = urlparse(url)
    scheme = parsed.scheme.casefold()
    if scheme in _BLOCKED_SCHEMES:
        raise ValueError(f"URL scheme not allowed: {scheme}")
    if scheme not in ("http", "https"):
        raise ValueError("URL must start with http:// or https://")
    if not parsed.netloc:
        raise ValueError("URL has no host")
    return url


def _is_system_path(path: Path) -> bool:
    text = path.as_posix()
    if any(
        text == prefix or text.startswith(prefix + "/") for prefix in _SYSTEM_PREFIXES
    ):
        return True
    return any(segment in text + "/" for segment in _SYSTEM_SEGMENTS)


def sanitize_path(raw: str | Path) -> Path:
    """Normalize a user-supplied path and reject unsafe ones.

    Expands ``~``, rejects ``..`` components and doubled separators, makes
    the path absolute and refuses system locations.

    Args:
        raw: Path string or Path.

    Returns:
        Absolute Path.

    Raises:
        ValueError: If the path is empty, contains traversal components or
            points into a system directory.
    """
    text = str(raw).strip()
    if not text:
        raise ValueError("Path must not be empty")
    if "//" in text or "\\\\" in text:
        raise ValueError("Invalid path: double separators not allowed")

    path = Path(text).expanduser()
    if ".." in path.parts:
        raise ValueError("Path traversal detected: '..' not allowed in paths")

    path = path.absolute()
    if _is_system_path(path):
        raise ValueError("Access to system directories is not allowed")
    return path


def validate_input_file(raw: str | Path) -> Path:
    """Validate a local media file used as transcode input.

    Raises:
        ValueError: If the file is missing, not a regular file, in a system
            location or has an executable/script extension.
    """
    path = sanitize_path(raw)
    if not path.exists():
        raise ValueError(f"Input file does not exist: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")
    ext = path.suffix.lstrip(".").casefold()
    if ext in _BLOCKED_INPUT_EXTENSIONS:
        raise ValueError(f"File type not allowed for conversion: .{ext}")
    return path


def parse_timestamp(value: str) -> float:
    """Parse ``SS``, ``MM:SS`` or ``HH:MM:SS`` (fractional seconds allowed).

    Returns:
        Seconds as a float.

    Raises:
        ValueError: If the value is not a timestamp.
    """
    text = value.strip()
    match = _TIMESTAMP_RE.match(text)
    if not match:
        raise ValueError(f"Invalid timestamp: {value!r}")
    parts = [float(p) for p in text.split(":")]
    seconds = 0.0
    for part in parts:
        seconds = seconds * 60 + part
    return seconds
