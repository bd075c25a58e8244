"""The lock contract shared by single-resource locks and lock sets."""

from __future__ import annotations

import math
from datetime import timedelta
from typing import Protocol, runtime_checkable

Timeout = float | int | timedelta | None


def normalize_timeout(timeout: Timeout) -> float | None:
    """Convert a timeout argument to seconds.

    ``None`` means wait indefinitely and is returned unchanged. Numbers are
    seconds; ``timedelta`` values are converted. Negative or NaN values raise
    ``ValueError``.
    """
    if timeout is None:
        return None
    if isinstance(timeout, timedelta):
        seconds = timeout.total_seconds()
    elif isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        raise TypeError(f"timeout must be a number of seconds, a timedelta or None, got {type(timeout).__name__}")
    else:
        seconds = float(timeout)
    if math.isnan(seconds) or seconds < 0:
        raise ValueError(f"timeout must be non-negative, got {timeout!r}")
    return seconds


@runtime_checkable
class DistributedLock(Protocol):
    """Mutual-exclusion lock on one resource, coordinated across processes."""

    def acquire(self, timeout: Timeout = None) -> bool:
        """Acquire the lock.

        With ``timeout=None`` block until acquired and return True, raising on
        unrecoverable failure. With a timeout return False if the lock was not
        acquired in time.
        """

    def release(self) -> None:
        """Release the lock if held. Must tolerate being called while not held."""

    def is_held_by_this_process(self) -> bool:
        """Report whether this process currently holds the lock, without blocking."""
