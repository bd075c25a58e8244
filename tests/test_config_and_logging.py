"""
Tests for configuration, logging helpers and exception formatting
"""

import json
import logging
from datetime import timedelta

import pytest

from interlock.core.config import LockConfig, LogConfig
from interlock.core.exceptions import (
    InterlockError,
    LockOwnershipLostError,
    LockReleaseError,
    LockTimeoutError,
)
from interlock.core.logging import ContextLoggerAdapter, JSONFormatter, setup_logging, with_log_context
from interlock.locks.protocol import normalize_timeout


@pytest.fixture(autouse=True)
def _clear_interlock_env(monkeypatch):
    for name in (
        "INTERLOCK_LOCK_BACKEND",
        "INTERLOCK_STALE_THRESHOLD",
        "INTERLOCK_POLL_INTERVAL",
        "INTERLOCK_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def restore_package_logger():
    logger = logging.getLogger("interlock")
    handlers = logger.handlers[:]
    level = logger.level
    yield logger
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)


class TestLockConfig:
    """Test LockConfig defaults and environment overrides"""

    def test_defaults(self):
        config = LockConfig()
        assert config.to_dict() == {
            "backend": "auto",
            "stale_threshold_seconds": 3600,
            "poll_interval_seconds": 0.1,
        }

    def test_from_env_applies_overrides(self, monkeypatch):
        monkeypatch.setenv("INTERLOCK_LOCK_BACKEND", " Lease ")
        monkeypatch.setenv("INTERLOCK_STALE_THRESHOLD", "120")
        monkeypatch.setenv("INTERLOCK_POLL_INTERVAL", "0.25")

        config = LockConfig.from_env()

        assert config.backend == "lease"
        assert config.stale_threshold_seconds == 120
        assert config.poll_interval_seconds == 0.25

    def test_from_env_ignores_invalid_values(self, monkeypatch, caplog):
        monkeypatch.setenv("INTERLOCK_LOCK_BACKEND", "etcd")
        monkeypatch.setenv("INTERLOCK_STALE_THRESHOLD", "soon")
        monkeypatch.setenv("INTERLOCK_POLL_INTERVAL", "nan")

        with caplog.at_level(logging.WARNING):
            config = LockConfig.from_env()

        assert config == LockConfig()
        assert "INTERLOCK_LOCK_BACKEND" in caplog.text
        assert "INTERLOCK_STALE_THRESHOLD" in caplog.text
        assert "INTERLOCK_POLL_INTERVAL" in caplog.text

    def test_stale_threshold_clamped_to_one_second(self):
        assert LockConfig(stale_threshold_seconds=0).stale_threshold_seconds == 1

    @pytest.mark.parametrize("value", [0, -0.5, float("nan"), float("inf")])
    def test_rejects_invalid_poll_interval(self, value):
        with pytest.raises(ValueError):
            LockConfig(poll_interval_seconds=value)


class TestNormalizeTimeout:
    """Test timeout argument normalization"""

    def test_none_means_unbounded(self):
        assert normalize_timeout(None) is None

    def test_numbers_and_timedeltas(self):
        assert normalize_timeout(0) == 0.0
        assert normalize_timeout(2) == 2.0
        assert normalize_timeout(timedelta(minutes=1)) == 60.0

    @pytest.mark.parametrize("value", [-1, -0.001, float("nan"), timedelta(seconds=-1)])
    def test_rejects_negative(self, value):
        with pytest.raises(ValueError):
            normalize_timeout(value)

    @pytest.mark.parametrize("value", ["5", True])
    def test_rejects_non_numeric(self, value):
        with pytest.raises(TypeError):
            normalize_timeout(value)


class TestLoggingHelpers:
    """Test context loggers, JSON output and setup"""

    def test_with_log_context_merges_fields(self):
        base = logging.getLogger("interlock.test")
        adapter = with_log_context(base, lock_count=3, ignored=None)
        nested = with_log_context(adapter, attempt=2)

        assert isinstance(nested, ContextLoggerAdapter)
        assert nested.logger is base
        assert nested.extra == {"lock_count": 3, "attempt": 2}

    def test_with_log_context_passes_through_non_loggers(self):
        sentinel = object()
        assert with_log_context(sentinel, a=1) is sentinel

    def test_json_formatter_includes_extra_fields(self):
        record = logging.makeLogRecord(
            {"name": "interlock.locks.multi", "levelname": "WARNING", "msg": "rollback %s", "args": ("failed",)}
        )
        record.lock_count = 2

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "rollback failed"
        assert payload["level"] == "WARNING"
        assert payload["lock_count"] == 2

    def test_json_formatter_survives_bad_format_args(self):
        record = logging.makeLogRecord({"msg": "%d locks", "args": ("many",)})

        payload = json.loads(JSONFormatter().format(record))

        assert "[log-message-format-error]" in payload["message"]

    def test_setup_logging_level_priority(self, monkeypatch, restore_package_logger):
        monkeypatch.setenv("INTERLOCK_LOG_LEVEL", "WARNING")

        assert setup_logging().level == logging.WARNING
        assert setup_logging(log_level="DEBUG").level == logging.DEBUG

    def test_setup_logging_does_not_duplicate_handlers(self, restore_package_logger):
        setup_logging(LogConfig(level="INFO"))
        logger = setup_logging(LogConfig(level="INFO", format="json"))

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_setup_logging_invalid_level_falls_back(self, capsys, restore_package_logger):
        logger = setup_logging(log_level="LOUD")

        assert logger.level == logging.INFO
        assert "Invalid log level 'LOUD'" in capsys.readouterr().err


class TestExceptions:
    """Test exception messages and attributes"""

    def test_base_error_formats_details(self):
        assert str(InterlockError("failed")) == "failed"
        assert str(InterlockError("failed", details="why")) == "failed: why"

    def test_release_error_requires_errors(self):
        with pytest.raises(ValueError):
            LockReleaseError([])

    def test_release_error_lists_every_failure(self):
        error = LockReleaseError([OSError("disk"), RuntimeError("gone")])

        assert str(error) == "Failed to release 2 lock(s): OSError: disk; RuntimeError: gone"
        assert isinstance(error.root_cause, OSError)

    def test_timeout_error_message(self):
        error = LockTimeoutError(1.5, 3)

        assert error.timeout == 1.5
        assert "3 lock(s)" in str(error)
        assert "1.5s" in str(error)

    def test_ownership_lost_error_keeps_reason(self):
        error = LockOwnershipLostError("/tmp/a.lock", reason="heartbeat failed")

        assert error.lock_path == "/tmp/a.lock"
        assert str(error) == "Lock ownership lost for '/tmp/a.lock': heartbeat failed"
