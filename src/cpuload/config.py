"""Runtime configuration for cpuload, with environment overrides."""

import math
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

from loguru import logger

ENV_PREFIX = "CPULOAD_"

MIN_POLL_RATE = 0.1


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_finite(value: str) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def _parse_level(value: str) -> str:
    name = value.strip().upper()
    # Raises ValueError for levels loguru does not know
    logger.level(name)
    return name


_PARSERS: dict[str, Callable[[str], Any]] = {
    "tick_interval_ms": _parse_finite,
    "native_interval_ms": _parse_finite,
    "use_native": _parse_bool,
    "poll_rate": _parse_finite,
    "history_size": int,
    "log_level": _parse_level,
}


@dataclass(slots=True, frozen=True)
class LoadConfig:
    """
    Throttle intervals and monitor settings.

    Every field can be overridden with an environment variable named after it,
    e.g. CPULOAD_TICK_INTERVAL_MS=500.
    """

    tick_interval_ms: float = 950.0
    native_interval_ms: float = 200.0
    use_native: bool = True
    poll_rate: float = 1.0  # seconds
    history_size: int = 60
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        for name in ("tick_interval_ms", "native_interval_ms"):
            if getattr(self, name) < 0:
                object.__setattr__(self, name, 0.0)
        if self.poll_rate < MIN_POLL_RATE:
            object.__setattr__(self, "poll_rate", MIN_POLL_RATE)
        if self.history_size < 1:
            object.__setattr__(self, "history_size", 1)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "LoadConfig":
        """
        Build a config from CPULOAD_* environment variables.

        Values that fail to parse are logged and the default is kept.
        """
        environ = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        for f in fields(cls):
            key = ENV_PREFIX + f.name.upper()
            if key not in environ:
                continue
            try:
                overrides[f.name] = _PARSERS[f.name](environ[key])
            except ValueError:
                logger.warning("Ignoring invalid value for {}: {!r}", key, environ[key])
        return replace(cls(), **overrides)
