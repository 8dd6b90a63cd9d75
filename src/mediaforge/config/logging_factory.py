"""Merge command-line logging flags into the configured LoggingConfig."""

from __future__ import annotations

import dataclasses
from pathlib import Path

from mediaforge.config.models import LoggingConfig


def build_logging_config(
    base: LoggingConfig,
    *,
    level: str | None = None,
    file: Path | None = None,
    format: str | None = None,
    include_stderr: bool | None = None,
) -> LoggingConfig:
    """Return a copy of ``base`` with every non-None override applied.

    Rotation settings always come from ``base``; there are no flags for them.

    Raises:
        ValueError: If an override is not a valid level or format.
    """
    overrides = {
        name: value
        for name, value in (
            ("level", level),
            ("file", file),
            ("format", format),
            ("include_stderr", include_stderr),
        )
        if value is not None
    }
    # replace() re-runs __post_init__, which validates the overrides
    return dataclasses.replace(base, **overrides)


def configure_logging_from_cli(
    *,
    config_path: Path | None = None,
    level: str | None = None,
    file: Path | None = None,
    format: str | None = None,
    include_stderr: bool | None = None,
) -> None:
    from mediaforge.config.loader import get_config
    from mediaforge.logging import configure_logging

    base = get_config(config_path=config_path).logging
    configure_logging(
        build_logging_config(
            base,
            level=level,
            file=file,
            format=format,
            include_stderr=include_stderr,
        )
    )
