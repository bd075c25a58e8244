"""Acquire and release an ordered set of distributed locks as one unit.

A ``CompositeLock`` walks its locks in the order given at construction when
acquiring and in the reverse order when releasing. Processes that always lock
the same resources through the same ordered set cannot deadlock each other.

Acquisition is all-or-nothing: when any lock times out or fails, every lock
acquired so far in that attempt is released again (most recent first) before
the call returns. Failures during that rollback are logged and dropped so the
rollback always completes; the failure that caused it is what the caller sees.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING

from interlock.core.exceptions import LockReleaseError, LockTimeoutError
from interlock.core.logging import with_log_context
from interlock.locks.protocol import DistributedLock, Timeout, normalize_timeout

if TYPE_CHECKING:
    from interlock.locks.client import LockClient
    from interlock.locks.mutex import FileMutex


def make_locks(
    client: LockClient,
    names: Iterable[str],
    *,
    on_lock_lost: Callable[[FileMutex, str], None] | None = None,
) -> tuple[DistributedLock, ...]:
    """Build one default-flavor lock per resource name, preserving order."""
    return tuple(client.mutex(name, on_lock_lost=on_lock_lost) for name in names)


class CompositeLock:
    """An ordered set of locks managed as a single lock.

    Satisfies the ``DistributedLock`` protocol itself, so composites can be
    nested or passed wherever a single lock is expected.

    Args:
        locks: Locks in the order they are to be acquired
        continue_on_error: Keep attempting the remaining locks after one raises
            while acquiring, so everything that could be acquired is rolled back
            together. By default the walk stops at the first error.
        logger: Logger for rollback and release diagnostics
    """

    def __init__(
        self,
        locks: Iterable[DistributedLock],
        *,
        continue_on_error: bool = False,
        logger: logging.Logger | None = None,
    ):
        self._locks: tuple[DistributedLock, ...] = tuple(locks)
        for lock in self._locks:
            if not isinstance(lock, DistributedLock):
                raise TypeError(f"{lock!r} does not implement acquire/release/is_held_by_this_process")
        self.continue_on_error = continue_on_error
        self.logger = with_log_context(logger or logging.getLogger(__name__), lock_count=len(self._locks))
        self._state_lock = threading.RLock()

    @classmethod
    def from_client(
        cls,
        client: LockClient,
        names: Sequence[str],
        *,
        on_lock_lost: Callable[[FileMutex, str], None] | None = None,
        continue_on_error: bool = False,
        logger: logging.Logger | None = None,
    ) -> CompositeLock:
        """Create a composite of file mutexes, one per name, locked in the given order."""
        return cls(
            make_locks(client, names, on_lock_lost=on_lock_lost),
            continue_on_error=continue_on_error,
            logger=logger,
        )

    @property
    def locks(self) -> tuple[DistributedLock, ...]:
        return self._locks

    def __len__(self) -> int:
        return len(self._locks)

    def acquire(self, timeout: Timeout = None) -> bool:
        """Acquire every lock in order, or none of them.

        Args:
            timeout: Seconds (or a timedelta) to wait for *each* lock; None
                waits indefinitely. The budget is per lock, so the whole call
                can take up to ``len(self) * timeout``.

        Returns:
            True when every lock was acquired. False when a bounded attempt
            timed out; the locks acquired before it have been released.

        Raises:
            The first exception raised by an underlying lock, after rollback.
        """
        seconds = normalize_timeout(timeout)
        acquired: list[DistributedLock] = []
        error: Exception | None = None
        success = True

        try:
            for lock in self._locks:
                try:
                    locked = lock.acquire(seconds)
                except Exception as e:
                    success = False
                    if error is None:
                        error = e
                    if self.continue_on_error:
                        continue
                    break
                if not locked:
                    success = False
                    break
                acquired.append(lock)
        except BaseException:
            # Interrupted mid-walk (KeyboardInterrupt, SystemExit).
            self._rollback(acquired)
            raise

        if not success:
            self._rollback(acquired)
            if error is not None:
                self.logger.debug(
                    "Lock set acquisition failed after %d of %d lock(s): %s",
                    len(acquired),
                    len(self._locks),
                    error,
                )
                raise error
            self.logger.debug(
                "Lock set acquisition timed out after %d of %d lock(s)", len(acquired), len(self._locks)
            )
        return success

    def release(self) -> None:
        """Release every lock in reverse order, held or not.

        Every lock gets exactly one release attempt even when earlier ones
        fail. Failures are collected and raised together afterwards.

        Raises:
            LockReleaseError: One or more releases failed; ``root_cause`` is the
                first failure encountered.
        """
        with self._state_lock:
            errors: list[BaseException] = []
            interrupt: BaseException | None = None
            for lock in reversed(self._locks):
                try:
                    lock.release()
                except Exception as e:
                    self.logger.debug("Release failed for %r: %s", lock, e)
                    errors.append(e)
                except BaseException as e:
                    # Finish the walk first; the interrupt is re-raised below.
                    if interrupt is None:
                        interrupt = e

            if interrupt is not None:
                raise interrupt
            if errors:
                raise LockReleaseError(errors) from errors[0]

    def is_held_by_this_process(self) -> bool:
        with self._state_lock:
            return all(lock.is_held_by_this_process() for lock in self._locks)

    @contextmanager
    def hold(self, timeout: Timeout = None) -> Iterator[CompositeLock]:
        """Hold the whole set for the duration of a ``with`` block.

        Raises:
            LockTimeoutError: The set could not be acquired within ``timeout`` per lock.
        """
        if not self.acquire(timeout):
            raise LockTimeoutError(normalize_timeout(timeout), len(self._locks))
        try:
            yield self
        finally:
            self.release()

    def _rollback(self, acquired: list[DistributedLock]) -> None:
        interrupt: BaseException | None = None
        for lock in reversed(acquired):
            try:
                lock.release()
            except Exception as e:
                self.logger.warning("Ignoring failure releasing %r during rollback: %s", lock, e)
            except BaseException as e:
                if interrupt is None:
                    interrupt = e
        if interrupt is not None:
            raise interrupt

    def __enter__(self) -> CompositeLock:
        if not self.acquire():
            raise LockTimeoutError(None, len(self._locks))
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"CompositeLock({list(self._locks)!r})"
