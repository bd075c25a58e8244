"""Pytest configuration and fixtures for interlock tests"""
import pytest

from interlock.core.config import LockConfig
from interlock.locks import backends as backends_module
from interlock.locks.client import LockClient


class FakeLock:
    """In-memory lock that records every call in a shared journal."""

    def __init__(self, name, journal, *, acquire_result=True, acquire_error=None, release_error=None):
        self.name = name
        self.journal = journal
        self.acquire_result = acquire_result
        self.acquire_error = acquire_error
        self.release_error = release_error
        self.held = False
        self.acquire_calls = []
        self.release_calls = 0

    def acquire(self, timeout=None):
        self.journal.append(("acquire", self.name))
        self.acquire_calls.append(timeout)
        if self.acquire_error is not None:
            raise self.acquire_error
        if self.acquire_result:
            self.held = True
        return self.acquire_result

    def release(self):
        self.journal.append(("release", self.name))
        self.release_calls += 1
        self.held = False
        if self.release_error is not None:
            raise self.release_error

    def is_held_by_this_process(self):
        return self.held

    def __repr__(self):
        return f"FakeLock({self.name!r})"


@pytest.fixture
def journal():
    """Ordered record of acquire/release calls across all fake locks"""
    return []


@pytest.fixture
def fake_lock(journal):
    """Factory building FakeLock instances that share the journal"""

    def _factory(name, **kwargs):
        return FakeLock(name, journal, **kwargs)

    return _factory


BACKENDS = [
    pytest.param(
        "fcntl",
        marks=pytest.mark.skipif(backends_module.fcntl is None, reason="fcntl not available on this platform"),
    ),
    "lease",
]


@pytest.fixture(params=BACKENDS)
def backend_name(request):
    return request.param


@pytest.fixture
def lock_client(tmp_path, backend_name):
    """LockClient over a temporary lock directory using each available backend"""
    config = LockConfig(backend=backend_name, poll_interval_seconds=0.01)
    return LockClient(tmp_path / "locks", owner="test-owner", config=config)
