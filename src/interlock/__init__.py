"""
interlock - ordered multi-resource locking across processes

Acquire a set of distributed locks as one all-or-nothing unit, release them
in reverse order, and get every failure reported.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

__all__ = [
    "__version__",
    "CompositeLock",
    "DistributedLock",
    "FileMutex",
    "LockClient",
    "make_locks",
    "InterlockError",
    "LockReleaseError",
    "LockTimeoutError",
    "LockOwnershipLostError",
    "LockNotOwnedError",
    "setup_logging",
]

_EXPORTS = {
    "__version__": "interlock.core.version",
    "CompositeLock": "interlock.locks.multi",
    "make_locks": "interlock.locks.multi",
    "DistributedLock": "interlock.locks.protocol",
    "FileMutex": "interlock.locks.mutex",
    "LockClient": "interlock.locks.client",
    "InterlockError": "interlock.core.exceptions",
    "LockReleaseError": "interlock.core.exceptions",
    "LockTimeoutError": "interlock.core.exceptions",
    "LockOwnershipLostError": "interlock.core.exceptions",
    "LockNotOwnedError": "interlock.core.exceptions",
    "setup_logging": "interlock.core.logging",
}

if TYPE_CHECKING:
    from interlock.core.exceptions import (
        InterlockError,
        LockNotOwnedError,
        LockOwnershipLostError,
        LockReleaseError,
        LockTimeoutError,
    )
    from interlock.core.logging import setup_logging
    from interlock.core.version import __version__
    from interlock.locks.client import LockClient
    from interlock.locks.multi import CompositeLock, make_locks
    from interlock.locks.mutex import FileMutex
    from interlock.locks.protocol import DistributedLock


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        import importlib

        return getattr(importlib.import_module(_EXPORTS[name]), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
