"""Rolling provider health scores.

Each provider carries three estimates in [0, 1], all starting at 1:

- success: share of recent outcomes that succeeded
- availability: share of recent outcomes that were not rate limited
- responsiveness: how quickly recent successes came back

The score is computed on read:

    score = 50 * success + 30 * availability + 20 * responsiveness

Every outcome moves each estimate a fixed fraction ``alpha`` of the way
toward its bound, with ``alpha = 2 / (window_size + 1)``. A success only
moves estimates up and a failure only moves them down. A plain failure
leaves availability untouched, so it can never undo a rate-limit penalty.
Slow successes still raise responsiveness, at half the rate of instant
ones. Recent outcomes dominate and old ones fade.

The last ``window_size`` outcomes are also kept verbatim for counts and
for the ``min_samples`` guard.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from threading import Lock

from baton.core.config import HealthConfig
from baton.core.constants import (
    HEALTH_MIN_SAMPLES,
    HEALTH_SLOW_RESPONSE_SECONDS,
    HEALTH_UNHEALTHY_THRESHOLD,
    HEALTH_WINDOW_SIZE,
)


@dataclass(frozen=True)
class _Outcome:
    success: bool
    rate_limited: bool = False
    duration_seconds: float | None = None


@dataclass
class _ProviderHealth:
    recent: deque[_Outcome]
    success: float = 1.0
    availability: float = 1.0
    responsiveness: float = 1.0

    def score(self) -> float:
        value = 50 * self.success + 30 * self.availability + 20 * self.responsiveness
        return round(max(0.0, min(100.0, value)), 2)


@dataclass(frozen=True)
class HealthRecord:
    """Point-in-time health of one provider."""

    provider: str
    samples: int
    successes: int
    failures: int
    rate_limited: int
    score: float
    healthy: bool
    components: dict[str, float] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        return self.successes / self.samples if self.samples else 1.0


class HealthMonitor:
    """Tracks recent outcomes and derives a 0-100 health score per provider."""

    def __init__(
        self,
        window_size: int = HEALTH_WINDOW_SIZE,
        unhealthy_threshold: float = HEALTH_UNHEALTHY_THRESHOLD,
        min_samples: int = HEALTH_MIN_SAMPLES,
        slow_response_seconds: float = HEALTH_SLOW_RESPONSE_SECONDS,
    ) -> None:
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        self.window_size = window_size
        self.unhealthy_threshold = unhealthy_threshold
        self.min_samples = min_samples
        self.slow_response_seconds = slow_response_seconds
        self.alpha = 2 / (window_size + 1)
        self._providers: dict[str, _ProviderHealth] = {}
        self._lock = Lock()

    @classmethod
    def from_config(cls, config: HealthConfig) -> HealthMonitor:
        return cls(
            window_size=config.window_size,
            unhealthy_threshold=config.unhealthy_threshold,
            min_samples=config.min_samples,
            slow_response_seconds=config.slow_response_seconds,
        )

    def _state(self, provider: str) -> _ProviderHealth:
        state = self._providers.get(provider)
        if state is None:
            state = _ProviderHealth(recent=deque(maxlen=self.window_size))
            self._providers[provider] = state
        return state

    def record_success(self, provider: str, duration_seconds: float | None = None) -> None:
        speed = self._speed(duration_seconds)
        with self._lock:
            state = self._state(provider)
            state.recent.append(_Outcome(True, duration_seconds=duration_seconds))
            state.success += self.alpha * (1 - state.success)
            state.availability += self.alpha * (1 - state.availability)
            state.responsiveness += self.alpha * (1 + speed) / 2 * (1 - state.responsiveness)

    def record_failure(self, provider: str, rate_limited: bool = False) -> None:
        with self._lock:
            state = self._state(provider)
            state.recent.append(_Outcome(False, rate_limited=rate_limited))
            state.success -= self.alpha * state.success
            state.responsiveness -= self.alpha * state.responsiveness
            if rate_limited:
                state.availability -= self.alpha * state.availability

    def health_score(self, provider: str) -> float:
        with self._lock:
            state = self._providers.get(provider)
            return state.score() if state is not None else 100.0

    def is_healthy(self, provider: str) -> bool:
        """Score above the threshold, or too few samples to judge."""
        with self._lock:
            state = self._providers.get(provider)
            if state is None or len(state.recent) < self.min_samples:
                return True
            return state.score() > self.unhealthy_threshold

    def snapshot(self, provider: str) -> HealthRecord:
        with self._lock:
            state = self._providers.get(provider)
            if state is None:
                return HealthRecord(
                    provider=provider,
                    samples=0,
                    successes=0,
                    failures=0,
                    rate_limited=0,
                    score=100.0,
                    healthy=True,
                    components={"success": 1.0, "availability": 1.0, "responsiveness": 1.0},
                )
            outcomes = list(state.recent)
            score = state.score()
            components = {
                "success": state.success,
                "availability": state.availability,
                "responsiveness": state.responsiveness,
            }
        successes = sum(1 for o in outcomes if o.success)
        return HealthRecord(
            provider=provider,
            samples=len(outcomes),
            successes=successes,
            failures=len(outcomes) - successes,
            rate_limited=sum(1 for o in outcomes if o.rate_limited),
            score=score,
            healthy=len(outcomes) < self.min_samples or score > self.unhealthy_threshold,
            components=components,
        )

    def reset(self, provider: str) -> None:
        with self._lock:
            self._providers.pop(provider, None)

    def _speed(self, duration_seconds: float | None) -> float:
        """1.0 for an instant response down to 0.0 at the slow threshold."""
        if duration_seconds is None:
            return 1.0
        return 1.0 - min(duration_seconds / self.slow_response_seconds, 1.0)
