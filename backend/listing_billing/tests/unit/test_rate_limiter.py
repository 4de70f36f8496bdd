"""
Tests for the durable fixed-window rate limiter.

Tests cover:
- Window alignment and counter keys
- Increment-then-compare ceiling semantics
- Exactly N of N+1 concurrent increments allowed
- Fail-open on storage errors
- Expired window cleanup
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from listing_billing.db_base import Base
from listing_billing.models.rate_limit import RateLimitCounter, RateLimitScope
from listing_billing.services.rate_limiter import (
    CounterKey,
    DurableRateLimiter,
    get_client_ip,
    hash_origin,
    window_start_for,
)

NOW = datetime(2026, 10, 16, 12, 34, 56, tzinfo=timezone.utc)


class TestKeys:

    def test_hash_origin_is_stable_and_opaque(self):
        hashed = hash_origin("203.0.113.7")
        assert hashed == hash_origin("203.0.113.7")
        assert hashed != hash_origin("203.0.113.8")
        assert len(hashed) == 32
        assert "." not in hashed

    def test_window_start_alignment(self):
        assert window_start_for(NOW, 60) == datetime(2026, 10, 16, 12, 34, tzinfo=timezone.utc)
        assert window_start_for(NOW, 3600) == datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)

    def test_origin_and_subject_keys(self):
        origin = CounterKey.for_origin("abc", 42, 60, now=NOW)
        subject = CounterKey.for_subject(42, 3600, now=NOW)

        assert origin.scope == RateLimitScope.ORIGIN
        assert origin.subject_key == "abc:42"
        assert subject.scope == RateLimitScope.SUBJECT
        assert subject.subject_key == "42"
        assert subject.window_start == datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)

    def test_client_ip_prefers_forwarded_for(self):
        request = MagicMock()
        request.headers = {"X-Forwarded-For": "198.51.100.1, 10.0.0.1", "X-Real-IP": "10.0.0.2"}
        assert get_client_ip(request) == "198.51.100.1"

        request.headers = {"X-Real-IP": "10.0.0.2"}
        assert get_client_ip(request) == "10.0.0.2"

        request.headers = {}
        request.client.host = "192.0.2.5"
        assert get_client_ip(request) == "192.0.2.5"

        request.client = None
        assert get_client_ip(request) == "unknown"


class TestDurableRateLimiter:

    def test_allows_up_to_ceiling(self, db_session):
        limiter = DurableRateLimiter(db_session)
        key = CounterKey.for_origin("abc", 1, 60, now=NOW)

        results = [limiter.check_and_increment(key, ceiling=3) for _ in range(5)]

        assert results == [True, True, True, False, False]
        assert limiter.current_count(key) == 5

    def test_new_window_starts_fresh(self, db_session):
        limiter = DurableRateLimiter(db_session)
        first = CounterKey.for_origin("abc", 1, 60, now=NOW)
        second = CounterKey.for_origin("abc", 1, 60, now=NOW + timedelta(seconds=60))

        for _ in range(3):
            limiter.check_and_increment(first, ceiling=2)

        assert limiter.check_and_increment(second, ceiling=2) is True
        assert limiter.current_count(second) == 1

    def test_keys_are_independent(self, db_session):
        limiter = DurableRateLimiter(db_session)
        a = CounterKey.for_origin("aaa", 1, 60, now=NOW)
        b = CounterKey.for_origin("bbb", 1, 60, now=NOW)
        subject = CounterKey.for_subject(1, 3600, now=NOW)

        assert limiter.check_and_increment(a, ceiling=1) is True
        assert limiter.check_and_increment(a, ceiling=1) is False
        assert limiter.check_and_increment(b, ceiling=1) is True
        assert limiter.check_and_increment(subject, ceiling=1) is True

    def test_fails_open_on_storage_error(self, db_session):
        limiter = DurableRateLimiter(db_session)
        key = CounterKey.for_subject(1, 3600, now=NOW)

        with patch.object(
            DurableRateLimiter,
            "increment",
            side_effect=OperationalError("INSERT", {}, Exception("db down")),
        ):
            assert limiter.check_and_increment(key, ceiling=1) is True

    def test_cleanup_expired(self, db_session):
        limiter = DurableRateLimiter(db_session)
        old = CounterKey.for_subject(1, 3600, now=NOW - timedelta(hours=3))
        current = CounterKey.for_subject(1, 3600, now=NOW)
        limiter.increment(old)
        limiter.increment(current)

        deleted = limiter.cleanup_expired(older_than_minutes=60, now=NOW)

        assert deleted == 1
        assert limiter.current_count(old) == 0
        assert limiter.current_count(current) == 1


@pytest.mark.slow
class TestConcurrentIncrements:

    @pytest.fixture
    def file_engine(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'counters.db'}",
            connect_args={"timeout": 30, "check_same_thread": False},
        )
        Base.metadata.create_all(bind=engine)
        yield engine
        engine.dispose()

    def test_exactly_ceiling_of_n_plus_one_allowed(self, file_engine):
        ceiling = 10
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
        key = CounterKey.for_origin(hash_origin("198.51.100.9"), 42, 60, now=NOW)

        def attempt(_):
            session = SessionLocal()
            try:
                return DurableRateLimiter(session).check_and_increment(key, ceiling)
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=ceiling + 1) as pool:
            results = list(pool.map(attempt, range(ceiling + 1)))

        assert results.count(True) == ceiling
        assert results.count(False) == 1

        session = SessionLocal()
        try:
            row = session.query(RateLimitCounter).one()
            assert row.event_count == ceiling + 1
        finally:
            session.close()
