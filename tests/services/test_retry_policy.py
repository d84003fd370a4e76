"""
Tests for RetryPolicy and conflict classification.
"""

import pytest
from sqlalchemy.exc import OperationalError

from inventory_kernel.exceptions import (
    ConcurrentModificationError,
    InsufficientStockError,
    ItemLockTimeoutError,
)
from inventory_kernel.services.retry import RetryPolicy, is_conflict


class _PgError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


def operational(message, pgcode=None):
    return OperationalError("UPDATE ...", {}, _PgError(message, pgcode))


class TestIsConflict:

    @pytest.mark.parametrize(
        "exc",
        [
            operational("database is locked"),
            operational("deadlock detected"),
            operational("could not serialize access due to concurrent update"),
            operational("whatever", pgcode="40001"),
            operational("whatever", pgcode="40P01"),
            operational("whatever", pgcode="55P03"),
            ItemLockTimeoutError("item-1", 1.0),
        ],
    )
    def test_conflicts(self, exc):
        assert is_conflict(exc)

    @pytest.mark.parametrize(
        "exc",
        [
            operational("no such table: master_items"),
            operational("connection refused", pgcode="08001"),
            ValueError("database is locked"),
            InsufficientStockError("item-1", "2", "1"),
        ],
    )
    def test_not_conflicts(self, exc):
        assert not is_conflict(exc)


class TestRetryPolicy:

    def test_returns_first_success(self):
        policy = RetryPolicy(sleep=lambda s: None)
        assert policy.run("op", lambda: 42) == 42

    def test_retries_conflicts_then_succeeds(self):
        sleeps = []
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise operational("database is locked")
            return "ok"

        policy = RetryPolicy(max_attempts=3, backoff_seconds=0.1, sleep=sleeps.append)

        assert policy.run("record_add", flaky) == "ok"
        assert len(calls) == 3
        assert sleeps == [0.1, 0.2]

    def test_exhaustion_raises_concurrent_modification(self, captured_logs):
        original = operational("deadlock detected")

        def always():
            raise original

        policy = RetryPolicy(max_attempts=2, sleep=lambda s: None)
        with pytest.raises(ConcurrentModificationError) as exc_info:
            policy.run("record_remove", always, item_id="item-9")

        err = exc_info.value
        assert err.attempts == 2
        assert err.operation == "record_remove"
        assert err.item_id == "item-9"
        assert err.__cause__ is original

        messages = [r["message"] for r in captured_logs()]
        assert messages.count("retry_conflict") == 1
        assert "retry_exhausted" in messages

    def test_domain_errors_are_not_retried(self):
        calls = []

        def fails():
            calls.append(1)
            raise InsufficientStockError("item-1", "2", "1")

        with pytest.raises(InsufficientStockError):
            RetryPolicy(sleep=lambda s: None).run("record_remove", fails)
        assert len(calls) == 1

    def test_non_conflict_operational_error_is_not_retried(self):
        calls = []

        def fails():
            calls.append(1)
            raise operational("no such table: master_items")

        with pytest.raises(OperationalError):
            RetryPolicy(sleep=lambda s: None).run("record_add", fails)
        assert len(calls) == 1

    def test_lock_timeout_is_retried(self):
        calls = []

        def fails_once():
            calls.append(1)
            if len(calls) == 1:
                raise ItemLockTimeoutError("item-1", 0.1)
            return "done"

        assert RetryPolicy(sleep=lambda s: None).run("record_add", fails_once) == "done"

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_backoff_doubles(self):
        policy = RetryPolicy(backoff_seconds=0.05)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [0.05, 0.1, 0.2]
