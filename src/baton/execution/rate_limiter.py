"""Per-provider rate-limit windows.

A provider marked limited stays unavailable until its reset time passes.
Expiry is lazy: nothing runs in the background, every check compares the
stored reset time with the clock.

If a limit is already active, a new report extends the window to whichever
reset is later; a report never shortens an existing window.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from threading import Lock

from baton.core.clock import Clock, SystemClock
from baton.core.config import RateLimitConfig
from baton.core.constants import RATE_LIMIT_DEFAULT_RESET_SECONDS, RATE_LIMIT_MAX_RESET_SECONDS
from baton.core.logging import get_logger

_logger = get_logger("rate_limiter")


class RateLimiter:
    """Tracks the rate-limit window of one provider."""

    def __init__(
        self,
        name: str = "default",
        default_reset_seconds: float = RATE_LIMIT_DEFAULT_RESET_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        if default_reset_seconds <= 0:
            raise ValueError("default_reset_seconds must be positive")
        self._name = name
        self._default_reset_seconds = default_reset_seconds
        self._clock = clock or SystemClock()
        self._limited_until: datetime | None = None
        self._lock = Lock()

    @classmethod
    def from_config(
        cls, name: str, config: RateLimitConfig, clock: Clock | None = None
    ) -> RateLimiter:
        return cls(name=name, default_reset_seconds=config.default_reset_seconds, clock=clock)

    @property
    def name(self) -> str:
        return self._name

    def mark_limited(self, reset_at: datetime | None = None) -> datetime:
        """Mark the provider limited until ``reset_at`` (or the default window).

        Reset times further out than the maximum window are clamped; reset
        times in the past fall back to the default window.

        Returns:
            The effective reset time after merging with any active window.
        """
        now = self._clock.now()
        if reset_at is None or reset_at <= now:
            reset_at = now + timedelta(seconds=self._default_reset_seconds)
        reset_at = min(reset_at, now + timedelta(seconds=RATE_LIMIT_MAX_RESET_SECONDS))

        with self._lock:
            if self._limited_until is not None and self._limited_until > reset_at:
                reset_at = self._limited_until
            self._limited_until = reset_at

        _logger.warning(
            "rate_limit.marked",
            provider=self._name,
            reset_at=reset_at.isoformat(),
            wait_seconds=round((reset_at - now).total_seconds(), 1),
        )
        return reset_at

    def is_limited(self) -> bool:
        with self._lock:
            return self._limited_until is not None and self._clock.now() < self._limited_until

    def reset_time(self) -> datetime | None:
        """Reset time if the provider is currently limited, else None."""
        with self._lock:
            if self._limited_until is not None and self._clock.now() < self._limited_until:
                return self._limited_until
            return None

    def clear(self) -> None:
        """Lift the limit immediately."""
        with self._lock:
            self._limited_until = None
        _logger.info("rate_limit.cleared", provider=self._name)


def earliest_reset(limiters: Iterable[RateLimiter]) -> datetime | None:
    """Earliest reset time among currently limited limiters."""
    resets = [t for t in (limiter.reset_time() for limiter in limiters) if t is not None]
    return min(resets) if resets else None
