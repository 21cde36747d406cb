"""Tests for free-tier usage limiting."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import Session

from backend.storage.models import UsageRecord
from backend.usage import CallerIdentity, UsageLimiter
from backend.usage.service import month_bounds


@pytest.fixture
def limiter(db_engine) -> UsageLimiter:
    return UsageLimiter(free_query_limit=3, engine=db_engine)


class TestMonthBounds:
    def test_mid_month(self):
        start, reset = month_bounds(datetime(2025, 6, 17, 13, 45, tzinfo=timezone.utc))
        assert start == datetime(2025, 6, 1, tzinfo=timezone.utc)
        assert reset == datetime(2025, 7, 1, tzinfo=timezone.utc)

    def test_december_rolls_over(self):
        _, reset = month_bounds(datetime(2025, 12, 31, 23, 59, tzinfo=timezone.utc))
        assert reset == datetime(2026, 1, 1, tzinfo=timezone.utc)


class TestCallerIdentity:
    def test_keys(self):
        assert CallerIdentity(user_id="u1", fingerprint="fp").key == "user:u1"
        assert CallerIdentity(fingerprint="fp").key == "anon:fp"
        assert CallerIdentity().is_anonymous is True


class TestUsageLimiter:
    def test_unidentified_caller_must_sign_up(self, limiter):
        check = limiter.check_allowed(CallerIdentity())
        assert check.allowed is False
        assert check.requires_auth is True

    def test_fingerprint_exhausts_free_queries(self, limiter):
        identity = CallerIdentity(fingerprint="browser-1")

        for expected_remaining in (3, 2, 1):
            check = limiter.check_allowed(identity)
            assert check.allowed is True
            assert check.remaining == expected_remaining
            limiter.consume_one(identity, conversation_id="c1")

        check = limiter.check_allowed(identity)
        assert check.allowed is False
        assert check.remaining == 0
        assert check.requires_auth is True
        assert check.paywall_message() == "You've used your 3 free queries. Sign up to continue!"

    def test_user_limit_is_monthly(self, limiter):
        identity = CallerIdentity(user_id="u1")
        for _ in range(3):
            limiter.consume_one(identity)

        check = limiter.check_allowed(identity)

        assert check.allowed is False
        assert check.requires_auth is False
        assert check.reset_date == month_bounds()[1]
        assert "monthly limit of 3" in check.paywall_message()

    def test_callers_are_counted_separately(self, limiter):
        limiter.consume_one(CallerIdentity(fingerprint="a"))
        limiter.consume_one(CallerIdentity(user_id="u1", fingerprint="a"))

        assert limiter.check_allowed(CallerIdentity(fingerprint="a")).remaining == 2
        assert limiter.check_allowed(CallerIdentity(fingerprint="b")).remaining == 3
        assert limiter.check_allowed(CallerIdentity(user_id="u1")).remaining == 2

    def test_previous_month_not_counted(self, limiter, db_engine):
        start, _ = month_bounds()
        with Session(db_engine) as session:
            for _ in range(3):
                session.add(UsageRecord(fingerprint="old", created_at=start - timedelta(days=1)))
            session.commit()

        assert limiter.check_allowed(CallerIdentity(fingerprint="old")).allowed is True
