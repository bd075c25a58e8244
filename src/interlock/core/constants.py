"""Constants and default values for interlock.

This module centralizes the defaults and environment variable names used by
the lock flavors and the logging helpers.
"""

# ==================== ENVIRONMENT VARIABLES ====================

LOCK_BACKEND_ENV: str = "INTERLOCK_LOCK_BACKEND"
STALE_THRESHOLD_ENV: str = "INTERLOCK_STALE_THRESHOLD"
POLL_INTERVAL_ENV: str = "INTERLOCK_POLL_INTERVAL"
LOG_LEVEL_ENV: str = "INTERLOCK_LOG_LEVEL"

# ==================== LOCK DEFAULTS ====================

DEFAULT_LOCK_BACKEND: str = "auto"
VALID_LOCK_BACKENDS: frozenset[str] = frozenset({"auto", "fcntl", "lease"})
DEFAULT_STALE_THRESHOLD_SECONDS: int = 3600  # Lease considered abandoned after 1 hour
DEFAULT_POLL_INTERVAL_SECONDS: float = 0.1  # Delay between primitive lock attempts
LOCK_FILE_SUFFIX: str = ".lock"

# Heartbeat cadence bounds for lease-based locks
HEARTBEAT_MIN_INTERVAL_SECONDS: float = 1.0
HEARTBEAT_MAX_INTERVAL_SECONDS: float = 30.0

# ==================== LOGGING DEFAULTS ====================

DEFAULT_LOG_LEVEL: str = "INFO"
DEFAULT_LOG_FORMAT: str = "text"
VALID_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
