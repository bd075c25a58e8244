"""Configuration dataclasses for interlock.

These dataclasses centralize the tunables of the bundled file lock flavor and
the logging helpers. They can be created directly in code or from environment
variables.
"""

from __future__ import annotations

import logging
import math
import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from interlock.core.constants import (
    DEFAULT_LOCK_BACKEND,
    DEFAULT_LOG_FORMAT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_STALE_THRESHOLD_SECONDS,
    LOCK_BACKEND_ENV,
    POLL_INTERVAL_ENV,
    STALE_THRESHOLD_ENV,
    VALID_LOCK_BACKENDS,
)


def _parse_env_numeric(value: str | None, cast: Callable[[str], Any]) -> Any | None:
    """Parse an environment value, returning None when invalid."""
    if value is None:
        return None
    try:
        parsed = cast(value)
    except (TypeError, ValueError):
        return None
    if isinstance(parsed, float) and not math.isfinite(parsed):
        return None
    return parsed


@dataclass
class LockConfig:
    """Configuration for file-based mutexes.

    Attributes:
        backend: Primitive lock backend: "auto", "fcntl" or "lease" (default: "auto")
        stale_threshold_seconds: Age after which an unrefreshed lease is reclaimed (default: 3600)
        poll_interval_seconds: Delay between attempts while waiting for a lock (default: 0.1)
    """

    backend: str = DEFAULT_LOCK_BACKEND
    stale_threshold_seconds: int = DEFAULT_STALE_THRESHOLD_SECONDS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS

    def __post_init__(self) -> None:
        self.stale_threshold_seconds = max(1, int(self.stale_threshold_seconds))
        if not math.isfinite(self.poll_interval_seconds) or self.poll_interval_seconds <= 0:
            raise ValueError(f"poll_interval_seconds must be positive and finite, got {self.poll_interval_seconds}")

    @classmethod
    def from_env(cls, logger: logging.Logger | None = None) -> LockConfig:
        """Create configuration with environment variable overrides applied.

        Invalid values are ignored with a warning and the default is kept.
        """
        log = logger or logging.getLogger(__name__)
        config = cls()

        backend = os.environ.get(LOCK_BACKEND_ENV)
        if backend is not None:
            normalized = backend.strip().lower()
            if normalized in VALID_LOCK_BACKENDS:
                config.backend = normalized
            else:
                log.warning(f"Ignoring invalid {LOCK_BACKEND_ENV}={backend!r}; using default {config.backend!r}")

        parsed_threshold = _parse_env_numeric(os.environ.get(STALE_THRESHOLD_ENV), int)
        if parsed_threshold is not None and parsed_threshold >= 1:
            config.stale_threshold_seconds = parsed_threshold
        elif STALE_THRESHOLD_ENV in os.environ:
            log.warning(
                f"Ignoring invalid {STALE_THRESHOLD_ENV}={os.environ.get(STALE_THRESHOLD_ENV)!r}; "
                f"using default {config.stale_threshold_seconds}"
            )

        parsed_interval = _parse_env_numeric(os.environ.get(POLL_INTERVAL_ENV), float)
        if parsed_interval is not None and parsed_interval > 0:
            config.poll_interval_seconds = parsed_interval
        elif POLL_INTERVAL_ENV in os.environ:
            log.warning(
                f"Ignoring invalid {POLL_INTERVAL_ENV}={os.environ.get(POLL_INTERVAL_ENV)!r}; "
                f"using default {config.poll_interval_seconds}"
            )

        return config

    def to_dict(self) -> dict[str, Any]:
        return {
            "backend": self.backend,
            "stale_threshold_seconds": self.stale_threshold_seconds,
            "poll_interval_seconds": self.poll_interval_seconds,
        }


@dataclass
class LogConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level string (default: "INFO")
        format: Output format, "text" or "json" (default: "text")
    """

    level: str = DEFAULT_LOG_LEVEL
    format: str = DEFAULT_LOG_FORMAT
