"""
Tests for the in-memory session store
"""

import threading
from datetime import timedelta

import pytest

from maintainer_api.core.security import DEFAULT_SESSION_TTL, Session, SessionStore


class TestSessionIssue:
    """Token issuance"""

    def test_token_is_64_hex_chars(self):
        store = SessionStore()
        token = store.issue()

        assert len(token) == 64
        int(token, 16)  # hex encoded

    def test_tokens_are_unique(self):
        store = SessionStore()
        tokens = {store.issue() for _ in range(200)}
        assert len(tokens) == 200

    def test_issue_sweeps_expired_sessions(self, datetime_clock):
        store = SessionStore(ttl=timedelta(minutes=5), clock=datetime_clock)
        store.issue()
        store.issue()

        datetime_clock.advance(timedelta(minutes=6))
        store.issue()

        assert store.active_count() == 1
        assert store.get_metrics()["expired_removed"] == 2

    def test_default_ttl_is_24_hours(self):
        assert SessionStore().ttl == DEFAULT_SESSION_TTL == timedelta(hours=24)


class TestSessionValidation:
    """Expiry boundaries against a fixed reference clock"""

    def test_valid_before_ttl(self, datetime_clock):
        store = SessionStore(clock=datetime_clock)
        token = store.issue()

        datetime_clock.advance(timedelta(hours=23, minutes=59))
        assert store.validate(token) is True

    def test_valid_exactly_at_ttl(self, datetime_clock):
        store = SessionStore(clock=datetime_clock)
        token = store.issue()

        datetime_clock.advance(DEFAULT_SESSION_TTL)
        assert store.validate(token) is True

    def test_invalid_strictly_after_ttl(self, datetime_clock):
        store = SessionStore(clock=datetime_clock)
        token = store.issue()

        datetime_clock.advance(DEFAULT_SESSION_TTL + timedelta(microseconds=1))
        assert store.validate(token) is False

    def test_expired_session_is_removed_on_validation(self, datetime_clock):
        store = SessionStore(ttl=timedelta(seconds=10), clock=datetime_clock)
        token = store.issue()

        datetime_clock.advance(timedelta(seconds=11))
        assert store.validate(token) is False
        assert store.active_count() == 0

        # Stays invalid even if the clock moved backwards
        datetime_clock.advance(timedelta(seconds=-11))
        assert store.validate(token) is False

    @pytest.mark.parametrize("token", [None, "", "not-a-real-token", 12345, b"bytes"])
    def test_unknown_or_malformed_tokens_are_invalid(self, token):
        store = SessionStore()
        store.issue()
        assert store.validate(token) is False

    def test_validation_failures_are_counted(self):
        store = SessionStore()
        store.validate("unknown")
        store.validate("also-unknown")
        assert store.get_metrics()["validation_failures"] == 2


class TestSessionReset:
    """Reset clears everything"""

    def test_reset_invalidates_all_tokens(self):
        store = SessionStore()
        tokens = [store.issue() for _ in range(3)]

        assert store.reset() == 3
        assert store.active_count() == 0
        for token in tokens:
            assert store.validate(token) is False

    def test_metrics_never_contain_tokens(self):
        store = SessionStore()
        token = store.issue()
        metrics = store.get_metrics()

        assert metrics["active_sessions"] == 1
        assert metrics["total_issued"] == 1
        assert token not in str(metrics)


class TestSessionModel:
    def test_is_expired_boundary(self, datetime_clock):
        session = Session(created_at=datetime_clock())
        ttl = timedelta(seconds=30)

        assert session.is_expired(datetime_clock.now + ttl, ttl) is False
        assert session.is_expired(datetime_clock.now + ttl + timedelta(seconds=1), ttl) is True


class TestConcurrentAccess:
    """Issue and validate from many threads without lost updates"""

    def test_concurrent_issue_and_validate(self):
        store = SessionStore()
        threads, per_thread = 8, 50
        start = threading.Barrier(threads)
        tokens = [[] for _ in range(threads)]
        checks = [[] for _ in range(threads)]

        def worker(index):
            start.wait()
            for _ in range(per_thread):
                token = store.issue()
                tokens[index].append(token)
                checks[index].append(store.validate(token))

        pool = [threading.Thread(target=worker, args=(i,)) for i in range(threads)]
        for thread in pool:
            thread.start()
        for thread in pool:
            thread.join()

        issued = [token for batch in tokens for token in batch]
        assert len(set(issued)) == threads * per_thread
        assert store.active_count() == threads * per_thread
        assert store.get_metrics()["total_issued"] == threads * per_thread
        assert all(all(batch) for batch in checks)
        assert all(store.validate(token) for token in issued)
