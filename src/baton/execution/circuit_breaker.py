"""Per-provider circuit breaker.

Stops routing requests to a provider after repeated failures and tries it
again after a recovery timeout.

The circuit breaker has three states:
- CLOSED: Normal operation, requests flow through
- OPEN: Provider is failing, requests are rejected
- HALF_OPEN: Testing recovery, successes close the circuit

State transitions:
- CLOSED -> OPEN: When failure_count >= failure_threshold
- OPEN -> HALF_OPEN: Lazily, on the first check after recovery_timeout
- HALF_OPEN -> CLOSED: After half_open_success_threshold successes
- HALF_OPEN -> OPEN: On any failure in half-open state

Example usage:
    breaker = CircuitBreaker("claude", failure_threshold=5, recovery_timeout=300.0)

    if not breaker.is_open():
        try:
            response = await provider.send_message(prompt)
            breaker.record_success()
        except ProviderError:
            breaker.record_failure()
            raise
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Any

from baton.core.clock import Clock, SystemClock
from baton.core.config import CircuitBreakerConfig
from baton.core.constants import (
    CIRCUIT_FAILURE_THRESHOLD,
    CIRCUIT_HALF_OPEN_SUCCESS_THRESHOLD,
    CIRCUIT_RECOVERY_TIMEOUT_SECONDS,
)
from baton.core.logging import get_logger

_logger = get_logger("circuit_breaker")


class CircuitState(str, Enum):
    """State of the circuit breaker."""

    CLOSED = "closed"
    """Normal operation - requests are allowed and failures are tracked."""

    OPEN = "open"
    """Blocking calls - requests are rejected, waiting for recovery timeout."""

    HALF_OPEN = "half_open"
    """Testing recovery - requests are allowed to test if the provider recovered."""


StateChangeCallback = Callable[[str, CircuitState, CircuitState, int], None]
"""Called as (breaker_name, old_state, new_state, failure_count)."""


@dataclass
class CircuitBreakerStats:
    """Counters for monitoring one circuit breaker."""

    total_successes: int = 0
    total_failures: int = 0
    times_opened: int = 0
    times_half_opened: int = 0
    times_closed: int = 0
    last_failure_at: datetime | None = None
    last_state_change_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_successes": self.total_successes,
            "total_failures": self.total_failures,
            "times_opened": self.times_opened,
            "times_half_opened": self.times_half_opened,
            "times_closed": self.times_closed,
            "last_failure_at": self.last_failure_at.isoformat() if self.last_failure_at else None,
            "last_state_change_at": (
                self.last_state_change_at.isoformat() if self.last_state_change_at else None
            ),
        }


class CircuitBreaker:
    """Circuit breaker for one provider.

    Thread-safe: All state modifications are protected by a lock. State
    change callbacks run after the lock is released.

    A disabled breaker keeps counting failures and successes and still
    moves between states, but ``is_open()`` always reports False.
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = CIRCUIT_FAILURE_THRESHOLD,
        recovery_timeout: float = CIRCUIT_RECOVERY_TIMEOUT_SECONDS,
        half_open_success_threshold: int = CIRCUIT_HALF_OPEN_SUCCESS_THRESHOLD,
        enabled: bool = True,
        clock: Clock | None = None,
        on_state_change: StateChangeCallback | None = None,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if recovery_timeout <= 0:
            raise ValueError("recovery_timeout must be positive")
        if half_open_success_threshold < 1:
            raise ValueError("half_open_success_threshold must be at least 1")

        self._name = name
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._half_open_success_threshold = half_open_success_threshold
        self._enabled = enabled
        self._clock = clock or SystemClock()
        self._on_state_change = on_state_change

        # State (protected by lock)
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: datetime | None = None
        self._stats = CircuitBreakerStats()

        self._lock = Lock()

    @classmethod
    def from_config(
        cls,
        name: str,
        config: CircuitBreakerConfig,
        clock: Clock | None = None,
        on_state_change: StateChangeCallback | None = None,
    ) -> CircuitBreaker:
        return cls(
            name=name,
            failure_threshold=config.failure_threshold,
            recovery_timeout=config.recovery_timeout_seconds,
            half_open_success_threshold=config.half_open_success_threshold,
            enabled=config.enabled,
            clock=clock,
            on_state_change=on_state_change,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def failure_threshold(self) -> int:
        return self._failure_threshold

    @property
    def recovery_timeout(self) -> float:
        return self._recovery_timeout

    @property
    def state(self) -> CircuitState:
        """Current state, applying the lazy OPEN -> HALF_OPEN transition."""
        with self._lock:
            transition = self._maybe_half_open()
            state = self._state
        self._notify(transition)
        return state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def success_count(self) -> int:
        return self._success_count

    @property
    def opened_at(self) -> datetime | None:
        return self._opened_at

    def is_open(self) -> bool:
        """Whether the circuit currently rejects requests.

        An OPEN circuit whose recovery timeout has elapsed moves to
        HALF_OPEN here and reports False.
        """
        with self._lock:
            transition = self._maybe_half_open()
            blocked = self._state == CircuitState.OPEN
        self._notify(transition)
        return blocked and self._enabled

    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    def record_success(self) -> None:
        """Record a successful call.

        Effects by state:
        - CLOSED: Resets the failure count
        - HALF_OPEN: Counts toward closing the circuit
        - OPEN: Counted in stats only

        An OPEN circuit past its recovery timeout moves to HALF_OPEN first.
        """
        with self._lock:
            self._stats.total_successes += 1
            recovery = self._maybe_half_open()
            transition = None
            if self._state == CircuitState.CLOSED:
                self._failure_count = 0
            elif self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self._half_open_success_threshold:
                    self._failure_count = 0
                    self._opened_at = None
                    transition = self._set_state(CircuitState.CLOSED, "recovery_confirmed")
        self._notify(recovery)
        self._notify(transition)

    def record_failure(self) -> None:
        """Record a failed call.

        Effects by state:
        - CLOSED: Increments the failure count, may open the circuit
        - HALF_OPEN: Reopens the circuit with a fresh opened_at
        - OPEN: Increments the failure count only

        An OPEN circuit past its recovery timeout moves to HALF_OPEN first.
        """
        with self._lock:
            now = self._clock.now()
            recovery = self._maybe_half_open()
            self._stats.total_failures += 1
            self._stats.last_failure_at = now
            self._failure_count += 1
            transition = None

            if self._state == CircuitState.HALF_OPEN:
                self._opened_at = now
                transition = self._set_state(CircuitState.OPEN, "recovery_test_failed")
            elif self._state == CircuitState.CLOSED:
                if self._failure_count >= self._failure_threshold:
                    self._opened_at = now
                    transition = self._set_state(CircuitState.OPEN, "failure_threshold_exceeded")
                else:
                    _logger.debug(
                        "circuit_breaker.failure_recorded",
                        name=self._name,
                        failure_count=self._failure_count,
                        failure_threshold=self._failure_threshold,
                    )
        self._notify(recovery)
        self._notify(transition)

    def time_until_retry(self) -> float | None:
        """Seconds until the circuit moves to HALF_OPEN, or None if not OPEN."""
        with self._lock:
            if self._state != CircuitState.OPEN or self._opened_at is None:
                return None
            elapsed = (self._clock.now() - self._opened_at).total_seconds()
            return max(0.0, self._recovery_timeout - elapsed)

    def reset(self) -> None:
        """Force the circuit CLOSED and clear all counters except stats."""
        with self._lock:
            self._failure_count = 0
            self._success_count = 0
            self._opened_at = None
            transition = self._set_state(CircuitState.CLOSED, "manual_reset")
        self._notify(transition)

    def force_open(self) -> None:
        """Force the circuit OPEN, starting a fresh recovery timeout."""
        with self._lock:
            self._opened_at = self._clock.now()
            transition = self._set_state(CircuitState.OPEN, "forced_open")
        self._notify(transition)

    def get_stats(self) -> dict[str, Any]:
        """Snapshot of state, counters and stats for display or logging."""
        retry_in = self.time_until_retry()
        with self._lock:
            return {
                "name": self._name,
                "state": self._state.value,
                "enabled": self._enabled,
                "failure_count": self._failure_count,
                "success_count": self._success_count,
                "failure_threshold": self._failure_threshold,
                "opened_at": self._opened_at.isoformat() if self._opened_at else None,
                "time_until_retry": retry_in,
                **self._stats.to_dict(),
            }

    def _maybe_half_open(self) -> tuple[CircuitState, CircuitState] | None:
        """OPEN -> HALF_OPEN once the recovery timeout has elapsed. Hold the lock."""
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return None
        elapsed = (self._clock.now() - self._opened_at).total_seconds()
        if elapsed < self._recovery_timeout:
            return None
        self._success_count = 0
        return self._set_state(CircuitState.HALF_OPEN, "recovery_timeout_elapsed")

    def _set_state(
        self, new_state: CircuitState, reason: str
    ) -> tuple[CircuitState, CircuitState] | None:
        """Apply a transition and update stats. Hold the lock."""
        old_state = self._state
        if old_state == new_state:
            return None

        self._state = new_state
        self._stats.last_state_change_at = self._clock.now()
        if new_state == CircuitState.OPEN:
            self._stats.times_opened += 1
        elif new_state == CircuitState.HALF_OPEN:
            self._stats.times_half_opened += 1
        else:
            self._stats.times_closed += 1

        _logger.info(
            "circuit_breaker.state_changed",
            name=self._name,
            from_state=old_state.value,
            to_state=new_state.value,
            reason=reason,
            failure_count=self._failure_count,
        )
        return old_state, new_state

    def _notify(self, transition: tuple[CircuitState, CircuitState] | None) -> None:
        if transition is None or self._on_state_change is None:
            return
        old_state, new_state = transition
        self._on_state_change(self._name, old_state, new_state, self._failure_count)
