"""Typed access to MEDIAFORGE_* environment variables.

Values that fail to parse are logged and treated as unset, so a typo in the
environment never stops the engine from starting.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRUTHY = frozenset({"1", "true", "yes", "on"})


class EnvReader:
    """Read environment variables with type conversion.

    Pass a plain dict to read from instead of os.environ:

        reader = EnvReader({"MEDIAFORGE_SERVER_PORT": "9000"})
        reader.get_int("MEDIAFORGE_SERVER_PORT", 8765)  # 9000
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env: Mapping[str, str] = os.environ if env is None else env

    def _convert(
        self, var: str, parse: Callable[[str], T], default: T | None
    ) -> T | None:
        raw = self._env.get(var)
        if raw is None:
            return default
        try:
            return parse(raw)
        except ValueError:
            logger.warning(
                "Ignoring %s=%r: expected %s", var, raw, getattr(parse, "__name__", "")
            )
            return default

    def get_str(self, var: str, default: str | None = None) -> str | None:
        return self._env.get(var, default)

    def get_int(self, var: str, default: int | None = None) -> int | None:
        return self._convert(var, int, default)

    def get_float(self, var: str, default: float | None = None) -> float | None:
        return self._convert(var, float, default)

    def get_bool(self, var: str, default: bool | None = None) -> bool | None:
        """Anything other than 1/true/yes/on (any case) reads as False."""
        return self._convert(var, lambda raw: raw.strip().lower() in _TRUTHY, default)

    def get_path(
        self, var: str, must_exist: bool = True, default: Path | None = None
    ) -> Path | None:
        """Read a path, expanding ``~``.

        Args:
            var: Environment variable name.
            must_exist: Treat a path that does not exist as unset.
            default: Returned when the variable is unset or rejected.
        """
        path = self._convert(var, lambda raw: Path(raw).expanduser(), None)
        if path is None:
            return default
        if must_exist and not path.exists():
            logger.warning("Ignoring %s: %s does not exist", var, path)
            return default
        return path
