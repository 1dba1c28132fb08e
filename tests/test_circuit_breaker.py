"""Tests for baton.execution.circuit_breaker module."""

import pytest

from baton.core.config import CircuitBreakerConfig
from baton.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerStats,
    CircuitState,
)


def _breaker(clock, **kwargs) -> CircuitBreaker:
    params = {"failure_threshold": 3, "recovery_timeout": 60.0, "half_open_success_threshold": 2}
    params.update(kwargs)
    return CircuitBreaker("claude", clock=clock, **params)


class TestCircuitState:
    """Tests for CircuitState enum."""

    def test_states_exist(self):
        assert CircuitState.CLOSED == "closed"
        assert CircuitState.OPEN == "open"
        assert CircuitState.HALF_OPEN == "half_open"


class TestCircuitBreakerStats:
    def test_default_values(self):
        stats = CircuitBreakerStats()
        assert stats.total_successes == 0
        assert stats.total_failures == 0
        assert stats.times_opened == 0
        assert stats.last_failure_at is None

    def test_to_dict_serializes_datetimes(self, clock):
        stats = CircuitBreakerStats(total_failures=2, last_failure_at=clock.now())
        result = stats.to_dict()
        assert result["total_failures"] == 2
        assert result["last_failure_at"] == clock.now().isoformat()
        assert result["last_state_change_at"] is None


class TestCircuitBreakerInit:
    """Tests for constructor validation and config loading."""

    def test_defaults(self):
        breaker = CircuitBreaker()
        assert breaker.name == "default"
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert breaker.enabled is True

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"failure_threshold": 0},
            {"recovery_timeout": 0},
            {"half_open_success_threshold": 0},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            CircuitBreaker(**kwargs)

    def test_from_config(self, clock):
        config = CircuitBreakerConfig(
            failure_threshold=7, recovery_timeout_seconds=30, half_open_success_threshold=1
        )
        breaker = CircuitBreaker.from_config("cursor", config, clock=clock)
        assert breaker.name == "cursor"
        assert breaker.failure_threshold == 7
        assert breaker.recovery_timeout == 30


class TestClosedState:
    def test_opens_at_threshold(self, clock):
        breaker = _breaker(clock)
        breaker.record_failure()
        breaker.record_failure()
        assert not breaker.is_open()

        breaker.record_failure()

        assert breaker.is_open()
        assert breaker.state == CircuitState.OPEN
        assert breaker.opened_at == clock.now()

    def test_success_resets_failure_count(self, clock):
        breaker = _breaker(clock)
        breaker.record_failure()
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        breaker.record_failure()

        assert breaker.failure_count == 2
        assert breaker.is_closed()


class TestOpenState:
    def test_stays_open_before_recovery_timeout(self, clock):
        breaker = _breaker(clock)
        breaker.force_open()
        clock.advance(59)
        assert breaker.is_open()
        assert breaker.time_until_retry() == pytest.approx(1.0)

    def test_lazily_moves_to_half_open(self, clock):
        breaker = _breaker(clock)
        breaker.force_open()
        clock.advance(60)

        assert breaker.is_open() is False
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.time_until_retry() is None

    def test_failures_while_open_only_count(self, clock):
        breaker = _breaker(clock, failure_threshold=1)
        breaker.record_failure()
        opened_at = breaker.opened_at
        clock.advance(10)
        breaker.record_failure()

        assert breaker.state == CircuitState.OPEN
        assert breaker.opened_at == opened_at
        assert breaker.failure_count == 2

    def test_success_while_open_does_not_close(self, clock):
        breaker = _breaker(clock)
        breaker.force_open()
        breaker.record_success()
        assert breaker.is_open()


class TestHalfOpenState:
    def _half_open(self, clock) -> CircuitBreaker:
        breaker = _breaker(clock)
        for _ in range(3):
            breaker.record_failure()
        clock.advance(60)
        assert breaker.state == CircuitState.HALF_OPEN
        return breaker

    def test_closes_after_success_threshold(self, clock):
        breaker = self._half_open(clock)
        breaker.record_success()
        assert breaker.state == CircuitState.HALF_OPEN

        breaker.record_success()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert breaker.opened_at is None

    def test_failure_reopens_with_fresh_timeout(self, clock):
        breaker = self._half_open(clock)
        breaker.record_success()
        breaker.record_failure()

        assert breaker.state == CircuitState.OPEN
        assert breaker.opened_at == clock.now()
        assert breaker.time_until_retry() == pytest.approx(60.0)

    def test_success_count_restarts_on_each_recovery_trial(self, clock):
        breaker = self._half_open(clock)
        breaker.record_success()
        breaker.record_failure()
        clock.advance(60)

        breaker.record_success()
        assert breaker.state == CircuitState.HALF_OPEN


class TestDisabledBreaker:
    def test_never_blocks_but_keeps_counting(self, clock):
        breaker = _breaker(clock, enabled=False)
        for _ in range(5):
            breaker.record_failure()

        assert breaker.is_open() is False
        assert breaker.state == CircuitState.OPEN
        assert breaker.failure_count == 5


class TestCallbacksAndStats:
    def test_state_change_callback(self, clock):
        changes = []
        breaker = _breaker(
            clock,
            failure_threshold=1,
            on_state_change=lambda name, old, new, count: changes.append((name, old, new, count)),
        )
        breaker.record_failure()
        clock.advance(60)
        breaker.is_open()

        assert changes == [
            ("claude", CircuitState.CLOSED, CircuitState.OPEN, 1),
            ("claude", CircuitState.OPEN, CircuitState.HALF_OPEN, 1),
        ]

    def test_no_callback_without_transition(self, clock):
        changes = []
        breaker = _breaker(clock, on_state_change=lambda *args: changes.append(args))
        breaker.record_failure()
        breaker.record_success()
        assert changes == []

    def test_get_stats(self, clock):
        breaker = _breaker(clock, failure_threshold=1)
        breaker.record_success()
        breaker.record_failure()

        stats = breaker.get_stats()

        assert stats["name"] == "claude"
        assert stats["state"] == "open"
        assert stats["total_successes"] == 1
        assert stats["total_failures"] == 1
        assert stats["times_opened"] == 1
        assert stats["time_until_retry"] == pytest.approx(60.0)

    def test_reset(self, clock):
        breaker = _breaker(clock, failure_threshold=1)
        breaker.record_failure()
        breaker.reset()

        assert breaker.is_closed()
        assert breaker.failure_count == 0
        assert breaker.get_stats()["times_closed"] == 1
