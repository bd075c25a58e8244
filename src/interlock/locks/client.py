"""Coordination handle for file-based mutexes and backend selection."""

from __future__ import annotations

import logging
import os
import socket
from collections.abc import Callable
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from interlock.core.config import LockConfig
from interlock.core.constants import LOCK_BACKEND_ENV, LOCK_FILE_SUFFIX
from interlock.locks.backends import FcntlFileLockBackend, LeaseFileLockBackend, LockBackend

if TYPE_CHECKING:
    from interlock.locks.mutex import FileMutex


def create_lock_backend(
    backend_name: str | None = None,
    *,
    logger: logging.Logger | None = None,
) -> LockBackend:
    """Create lock backend from explicit value or environment override."""
    log = logger or logging.getLogger(__name__)
    requested = (backend_name or os.environ.get(LOCK_BACKEND_ENV, "auto")).strip().lower()

    if requested == "auto":
        if FcntlFileLockBackend.is_supported():
            return FcntlFileLockBackend()
        log.warning("fcntl locks unavailable; using lease lock backend")
        return LeaseFileLockBackend()

    if requested == "fcntl":
        if FcntlFileLockBackend.is_supported():
            return FcntlFileLockBackend()
        log.warning("Requested fcntl backend is unavailable; falling back to lease backend")
        return LeaseFileLockBackend()

    if requested == "lease":
        return LeaseFileLockBackend()

    log.warning("Unknown lock backend '%s'; falling back to auto selection", requested)
    return create_lock_backend("auto", logger=log)


def _default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


class LockClient:
    """Handle to a lock directory shared by cooperating processes.

    Resource names are relative, slash-separated identifiers such as
    ``"orders/42"``; each maps to ``<lock_dir>/<name>.lock``. Every process
    that points a client at the same directory contends for the same locks.
    """

    def __init__(
        self,
        lock_dir: str | os.PathLike[str],
        *,
        owner: str | None = None,
        config: LockConfig | None = None,
        logger: logging.Logger | None = None,
    ):
        self.lock_dir = Path(lock_dir)
        self.owner = owner or _default_owner()
        self.config = config or LockConfig.from_env(logger)
        self.logger = logger or logging.getLogger(__name__)

    def lock_path(self, name: str) -> Path:
        """Resolve a resource name to its lock file path."""
        if not name or not name.strip("/"):
            raise ValueError("lock name must not be empty")
        relative = PurePosixPath(name)
        if relative.is_absolute():
            raise ValueError(f"lock name must be relative, got {name!r}")
        if not relative.parts or ".." in relative.parts:
            raise ValueError(f"lock name must name a path inside the lock directory, got {name!r}")
        return self.lock_dir.joinpath(*relative.parts).with_name(relative.name + LOCK_FILE_SUFFIX)

    def create_backend(self) -> LockBackend:
        return create_lock_backend(self.config.backend, logger=self.logger)

    def mutex(
        self,
        name: str,
        *,
        on_lock_lost: Callable[[FileMutex, str], None] | None = None,
    ) -> FileMutex:
        """Build the default lock flavor for one resource."""
        from interlock.locks.mutex import FileMutex

        return FileMutex(self, name, on_lock_lost=on_lock_lost)

    def __repr__(self) -> str:
        return f"LockClient(lock_dir={str(self.lock_dir)!r}, owner={self.owner!r}, backend={self.config.backend!r})"
