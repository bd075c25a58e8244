"""Core module - Foundation components with no internal dependencies.

This module provides the basic building blocks used throughout the library:
- Version information
- Custom exceptions
- Configuration dataclasses
- Constants and defaults
"""

from interlock.core.version import __version__

from interlock.core.exceptions import (
    InterlockError,
    LockTimeoutError,
    LockReleaseError,
    LockOwnershipLostError,
    LockNotOwnedError,
    LockBackendUnavailableError,
)

from interlock.core.config import (
    LockConfig,
    LogConfig,
)

from interlock.core.constants import (
    LOCK_BACKEND_ENV,
    STALE_THRESHOLD_ENV,
    POLL_INTERVAL_ENV,
    LOG_LEVEL_ENV,
    DEFAULT_LOCK_BACKEND,
    VALID_LOCK_BACKENDS,
    DEFAULT_STALE_THRESHOLD_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    LOCK_FILE_SUFFIX,
)

__all__ = [
    # Version
    '__version__',
    # Exceptions
    'InterlockError',
    'LockTimeoutError',
    'LockReleaseError',
    'LockOwnershipLostError',
    'LockNotOwnedError',
    'LockBackendUnavailableError',
    # Config dataclasses
    'LockConfig',
    'LogConfig',
    # Constants
    'LOCK_BACKEND_ENV',
    'STALE_THRESHOLD_ENV',
    'POLL_INTERVAL_ENV',
    'LOG_LEVEL_ENV',
    'DEFAULT_LOCK_BACKEND',
    'VALID_LOCK_BACKENDS',
    'DEFAULT_STALE_THRESHOLD_SECONDS',
    'DEFAULT_POLL_INTERVAL_SECONDS',
    'LOCK_FILE_SUFFIX',
]
