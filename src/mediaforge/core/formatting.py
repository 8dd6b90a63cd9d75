"""Formatting utilities.

Pure functions for presenting task state in the CLI.
"""

from __future__ import annotations


def format_progress(percent: float | None) -> str:
    """Format a progress percentage.

    Args:
        percent: Percentage 0-100, or None when indeterminate.

    Returns:
        Formatted string (e.g., " 42.5%"), or "  --  " when indeterminate.
    """
    if percent is None:
        return "  --  "
    return f"{percent:5.1f}%"


def format_elapsed(seconds: float) -> str:
    """Format a duration as H:MM:SS or M:SS.

    Examples:
        >>> format_elapsed(75)
        '1:15'
        >>> format_elapsed(3725)
        '1:02:05'
    """
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def truncate_name(name: str, max_length: int = 40) -> str:
    """Truncate a file name preserving start and extension.

    If truncation is needed, shows: beginning…extension

    Examples:
        >>> truncate_name("some-very-long-movie-name.mkv", 25)
        'some-very-long-movie….mkv'
        >>> truncate_name("no-extension", 10)
        'no-extens…'
    """
    if not name or len(name) <= max_length:
        return name

    dot_index = name.rfind(".")
    if dot_index > 0:
        extension = name[dot_index:]
        base = name[:dot_index]
    else:
        extension = ""
        base = name

    available_for_base = max_length - len(extension) - 1
    if available_for_base < 1:
        return name[: max_length - 1] + "…"

    return base[:available_for_base] + "…" + extension


def format_file_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Returns:
        Formatted string (e.g., "4.2 GB", "128.0 MB", "1.5 KB").
    """
    if size_bytes >= 1024**3:
        return f"{size_bytes / (1024**3):.1f} GB"
    elif size_bytes >= 1024**2:
        return f"{size_bytes / (1024**2):.1f} MB"
    elif size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f} KB"
    else:
        return f"{size_bytes} B"
