"""Tests for baton.execution.rate_limiter module."""

from datetime import timedelta

import pytest

from baton.core.config import RateLimitConfig
from baton.execution.rate_limiter import RateLimiter, earliest_reset


class TestMarkLimited:
    def test_explicit_reset_time(self, clock):
        limiter = RateLimiter("claude", clock=clock)
        reset = clock.now() + timedelta(minutes=10)

        assert limiter.mark_limited(reset) == reset
        assert limiter.is_limited()
        assert limiter.reset_time() == reset

    def test_default_window_when_no_reset_given(self, clock):
        limiter = RateLimiter("claude", default_reset_seconds=600, clock=clock)
        assert limiter.mark_limited() == clock.now() + timedelta(seconds=600)

    def test_past_reset_uses_default_window(self, clock):
        limiter = RateLimiter("claude", default_reset_seconds=600, clock=clock)
        effective = limiter.mark_limited(clock.now() - timedelta(minutes=1))
        assert effective == clock.now() + timedelta(seconds=600)

    def test_far_future_reset_is_clamped(self, clock):
        limiter = RateLimiter("claude", clock=clock)
        effective = limiter.mark_limited(clock.now() + timedelta(days=3))
        assert effective == clock.now() + timedelta(hours=24)

    def test_new_report_never_shortens_window(self, clock):
        limiter = RateLimiter("claude", clock=clock)
        long_reset = clock.now() + timedelta(hours=2)
        limiter.mark_limited(long_reset)

        effective = limiter.mark_limited(clock.now() + timedelta(minutes=5))

        assert effective == long_reset
        assert limiter.reset_time() == long_reset

    def test_later_report_extends_window(self, clock):
        limiter = RateLimiter("claude", clock=clock)
        limiter.mark_limited(clock.now() + timedelta(minutes=5))
        later = clock.now() + timedelta(hours=1)
        assert limiter.mark_limited(later) == later


class TestExpiry:
    def test_limit_expires_lazily(self, clock):
        limiter = RateLimiter("claude", clock=clock)
        limiter.mark_limited(clock.now() + timedelta(seconds=30))

        clock.advance(29)
        assert limiter.is_limited()

        clock.advance(1)
        assert not limiter.is_limited()
        assert limiter.reset_time() is None

    def test_clear(self, clock):
        limiter = RateLimiter("claude", clock=clock)
        limiter.mark_limited()
        limiter.clear()
        assert not limiter.is_limited()

    def test_fresh_limiter_is_not_limited(self, clock):
        assert not RateLimiter("claude", clock=clock).is_limited()


class TestConstruction:
    def test_from_config(self, clock):
        limiter = RateLimiter.from_config(
            "cursor", RateLimitConfig(default_reset_seconds=90), clock=clock
        )
        assert limiter.name == "cursor"
        assert limiter.mark_limited() == clock.now() + timedelta(seconds=90)

    def test_rejects_non_positive_window(self):
        with pytest.raises(ValueError):
            RateLimiter(default_reset_seconds=0)


class TestEarliestReset:
    def test_earliest_among_limited(self, clock):
        a = RateLimiter("a", clock=clock)
        b = RateLimiter("b", clock=clock)
        c = RateLimiter("c", clock=clock)
        a.mark_limited(clock.now() + timedelta(hours=2))
        b.mark_limited(clock.now() + timedelta(minutes=15))

        assert earliest_reset([a, b, c]) == clock.now() + timedelta(minutes=15)

    def test_none_when_nothing_limited(self, clock):
        assert earliest_reset([RateLimiter("a", clock=clock)]) is None
