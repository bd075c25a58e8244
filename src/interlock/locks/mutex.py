"""Re-entrant file mutex: the default single-resource lock flavor."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import replace
from typing import TYPE_CHECKING

from interlock.core.constants import HEARTBEAT_MAX_INTERVAL_SECONDS, HEARTBEAT_MIN_INTERVAL_SECONDS
from interlock.core.exceptions import LockBackendUnavailableError, LockNotOwnedError, LockOwnershipLostError
from interlock.locks.backends import (
    AcquireResult,
    AcquireStatus,
    FcntlFileLockBackend,
    FileLockHandle,
    LeaseFileLockBackend,
    LockInfo,
    _utcnow_iso,
)
from interlock.locks.protocol import Timeout, normalize_timeout

if TYPE_CHECKING:
    from interlock.locks.client import LockClient


class FileMutex:
    """Mutual exclusion on one named resource of a ``LockClient`` directory.

    The mutex is re-entrant for the thread that holds it: nested ``acquire``
    calls must be matched by the same number of ``release`` calls. Other
    threads of the same process contend for it like other processes do.

    Waiting polls the non-blocking backend every ``poll_interval_seconds``;
    there is no fairness between waiters.
    """

    def __init__(
        self,
        client: LockClient,
        name: str,
        *,
        on_lock_lost: Callable[[FileMutex, str], None] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.client = client
        self.name = name
        self.lock_path = client.lock_path(name)
        self.on_lock_lost = on_lock_lost
        self.logger = logger or client.logger
        self.backend = client.create_backend()

        self._handle: FileLockHandle | None = None
        self._lock_info: LockInfo | None = None
        self._owner_thread: int | None = None
        self._hold_count = 0

        self._heartbeat_stop = threading.Event()
        self._heartbeat_thread: threading.Thread | None = None
        self._state_lock = threading.RLock()
        self._lock_lost = threading.Event()
        self._lock_lost_reason: str | None = None

    @property
    def lock_lost(self) -> bool:
        return self._lock_lost.is_set()

    @property
    def owned_by_current_thread(self) -> bool:
        with self._state_lock:
            return self._handle is not None and self._owner_thread == threading.get_ident()

    def is_held_by_this_process(self) -> bool:
        with self._state_lock:
            return self._handle is not None

    def acquire(self, timeout: Timeout = None) -> bool:
        """Acquire the mutex, waiting up to ``timeout`` seconds (forever if None)."""
        seconds = normalize_timeout(timeout)
        with self._state_lock:
            if self._handle is not None and self._owner_thread == threading.get_ident():
                self._hold_count += 1
                return True

        poll_interval = self.client.config.poll_interval_seconds
        deadline = None if seconds is None else time.monotonic() + seconds
        while True:
            if self._try_acquire():
                return True
            if deadline is None:
                time.sleep(poll_interval)
                continue
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.logger.debug("Timed out after %ss waiting for lock '%s'", seconds, self.lock_path)
                return False
            time.sleep(min(poll_interval, remaining))

    def release(self) -> None:
        """Release one hold on the mutex; a no-op when it is not held."""
        with self._state_lock:
            if self._handle is None:
                return
            if self._owner_thread != threading.get_ident():
                raise LockNotOwnedError(str(self.lock_path))
            self._hold_count -= 1
            if self._hold_count > 0:
                return
            handle = self._clear_state()
        self._stop_heartbeat()
        self.backend.release(handle)

    def ensure_held(self) -> None:
        """Raise ``LockOwnershipLostError`` if the lock was lost while held."""
        with self._state_lock:
            if self._handle is not None:
                return
            if self._lock_lost.is_set():
                raise LockOwnershipLostError(str(self.lock_path), reason=self._lock_lost_reason)

    def read_info(self) -> dict | None:
        """Read lock metadata for diagnostics."""
        lock_info = self.backend.read_info(self.lock_path)
        if lock_info is None:
            return None
        return lock_info.to_dict()

    def _try_acquire(self) -> bool:
        with self._state_lock:
            if self._handle is not None:
                # Held by another thread of this process.
                return False

        result = self._acquire_with_result()
        if result.status == AcquireStatus.BACKEND_UNAVAILABLE and isinstance(self.backend, FcntlFileLockBackend):
            self.logger.warning(
                "fcntl backend unavailable for '%s'; falling back to lease backend",
                self.lock_path,
            )
            self.backend = LeaseFileLockBackend()
            result = self._acquire_with_result()

        if result.status == AcquireStatus.BACKEND_UNAVAILABLE:
            if result.error is not None:
                raise result.error
            raise LockBackendUnavailableError(f"lock backend unavailable for '{self.lock_path}'")

        handle = result.handle
        if result.status != AcquireStatus.ACQUIRED or handle is None:
            return False

        with self._state_lock:
            self._handle = handle
            self._lock_info = LockInfo.for_current_process(handle.lock_id, self.client.owner, self.backend.name)
            self._owner_thread = threading.get_ident()
            self._hold_count = 1
            self._lock_lost.clear()
            self._lock_lost_reason = None
        self._start_heartbeat_if_needed()
        return True

    def _acquire_with_result(self) -> AcquireResult:
        return self.backend.acquire_result(
            self.lock_path,
            self.client.config.stale_threshold_seconds,
            owner=self.client.owner,
        )

    def _clear_state(self) -> FileLockHandle | None:
        handle = self._handle
        self._handle = None
        self._lock_info = None
        self._owner_thread = None
        self._hold_count = 0
        return handle

    def _start_heartbeat_if_needed(self) -> None:
        with self._state_lock:
            if not self.backend.requires_heartbeat or self._handle is None:
                return
            thread = self._heartbeat_thread
            if thread is not None and thread.is_alive() and not self._heartbeat_stop.is_set():
                return

        stale_threshold = self.client.config.stale_threshold_seconds
        interval_seconds = min(HEARTBEAT_MAX_INTERVAL_SECONDS, max(HEARTBEAT_MIN_INTERVAL_SECONDS, stale_threshold / 3))
        stop = threading.Event()
        self._heartbeat_stop = stop
        self._heartbeat_thread = threading.Thread(
            target=self._heartbeat_loop,
            args=(interval_seconds, stop),
            daemon=True,
            name=f"lock-heartbeat-{self.lock_path.name}",
        )
        self._heartbeat_thread.start()

    def _stop_heartbeat(self) -> None:
        self._heartbeat_stop.set()
        thread = self._heartbeat_thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        self._heartbeat_thread = None

    def _heartbeat_loop(self, interval_seconds: float, stop: threading.Event) -> None:
        while not stop.wait(interval_seconds):
            with self._state_lock:
                if self._handle is None or self._lock_info is None:
                    return
                handle = self._handle
                refreshed_info = replace(self._lock_info, updated_at=_utcnow_iso())
                self._lock_info = refreshed_info
            try:
                self.backend.write_info(handle, refreshed_info)
            except OSError as e:
                self._handle_heartbeat_failure(e, stop)
                return

    def _handle_heartbeat_failure(self, error: OSError, stop: threading.Event) -> None:
        reason = f"heartbeat metadata write failed: {error}"
        self.logger.error("Lock heartbeat failed for %s; releasing lock (%s)", self.lock_path, error)
        with self._state_lock:
            if self._handle is None:
                return
            handle = self._clear_state()
            self._lock_lost_reason = reason
            self._lock_lost.set()
        stop.set()
        try:
            self.backend.release(handle)
        except OSError as e:
            self.logger.debug("Ignoring release failure for lost lock %s: %s", self.lock_path, e)
        if self.on_lock_lost is not None:
            try:
                self.on_lock_lost(self, reason)
            except Exception:
                self.logger.exception("on_lock_lost callback failed for %s", self.lock_path)

    def __repr__(self) -> str:
        return f"FileMutex(name={self.name!r}, backend={self.backend.name!r})"
