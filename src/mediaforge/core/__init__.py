"""Core utilities package.

Pure helpers with no dependency on the job engine: input validation,
display formatting and blocking subprocess invocation.
"""

from mediaforge.core.formatting import (
    format_elapsed,
    format_file_size,
    format_progress,
    truncate_name,
)
from mediaforge.core.subprocess_utils import run_command
from mediaforge.core.validation import (
    parse_timestamp,
    sanitize_path,
    validate_input_file,
    validate_source_url,
)

__all__ = [
    "format_elapsed",
    "format_file_size",
    "format_progress",
    "parse_timestamp",
    "run_command",
    "sanitize_path",
    "truncate_name",
    "validate_input_file",
    "validate_source_url",
]
