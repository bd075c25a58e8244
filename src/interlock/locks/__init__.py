"""Locking subsystem for cross-process coordination.

``CompositeLock`` manages an ordered set of ``DistributedLock`` objects as one
lock. ``LockClient`` and ``FileMutex`` provide the bundled file-based flavor
used when a composite is built from resource names.
"""

from interlock.locks.backends import (
    FcntlFileLockBackend,
    LeaseFileLockBackend,
    LockInfo,
)
from interlock.locks.client import LockClient, create_lock_backend
from interlock.locks.multi import CompositeLock, make_locks
from interlock.locks.mutex import FileMutex
from interlock.locks.protocol import DistributedLock, normalize_timeout

__all__ = [
    "CompositeLock",
    "DistributedLock",
    "FcntlFileLockBackend",
    "FileMutex",
    "LeaseFileLockBackend",
    "LockClient",
    "LockInfo",
    "create_lock_backend",
    "make_locks",
    "normalize_timeout",
]
