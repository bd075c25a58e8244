"""Custom exceptions for interlock.

Failures raised by an individual lock while acquiring are re-raised unchanged;
the classes here cover the failures that belong to the lock set as a whole and
to the bundled file lock flavor.
"""

from __future__ import annotations


class InterlockError(Exception):
    """Base exception for all interlock errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class LockTimeoutError(InterlockError):
    """Raised by ``hold()`` and ``with composite:`` when acquisition did not complete.

    ``acquire(timeout)`` itself reports a timeout by returning False; this
    exception is only used where a boolean cannot be returned.

    Attributes:
        timeout: Per-lock timeout in seconds that was exceeded
        lock_count: Number of locks in the set
    """

    def __init__(self, timeout: float | None, lock_count: int):
        self.timeout = timeout
        self.lock_count = lock_count
        message = f"Timed out acquiring lock set of {lock_count} lock(s)"
        details = f"per-lock timeout {timeout}s" if timeout is not None else None
        super().__init__(message, details)


class LockReleaseError(InterlockError):
    """Raised after releasing a lock set when one or more releases failed.

    Every lock in the set still received its release attempt. The failures are
    kept in the order they were encountered (reverse acquisition order).

    Attributes:
        errors: Release failures, first encountered first
        root_cause: The first failure encountered
    """

    def __init__(self, errors: list[BaseException]):
        if not errors:
            raise ValueError("LockReleaseError requires at least one error")
        self.errors = list(errors)
        message = f"Failed to release {len(self.errors)} lock(s)"
        details = "; ".join(f"{type(e).__name__}: {e}" for e in self.errors)
        super().__init__(message, details)

    @property
    def root_cause(self) -> BaseException:
        return self.errors[0]


class LockOwnershipLostError(InterlockError):
    """Raised when a lock was dropped while the process believed it held it.

    Attributes:
        lock_path: Path of the lost lock
        reason: Why ownership was lost (e.g. heartbeat write failure)
    """

    def __init__(self, lock_path: str, reason: str | None = None):
        self.lock_path = lock_path
        self.reason = reason
        super().__init__(f"Lock ownership lost for '{lock_path}'", reason)


class LockNotOwnedError(InterlockError):
    """Raised when a thread releases a lock held by another thread."""

    def __init__(self, lock_path: str):
        self.lock_path = lock_path
        super().__init__(f"Lock '{lock_path}' is not held by the current thread")


class LockBackendUnavailableError(OSError):
    """Raised when a backend exists but is unusable for the target lock path."""
