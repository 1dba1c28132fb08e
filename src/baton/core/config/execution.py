"""Resilience configuration models.

Defines circuit breaker, rate limit, retry and health-scoring settings.
Each can be set globally on OrchestratorConfig; circuit_breaker and
rate_limit can also be overridden per provider.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from baton.core.constants import (
    CIRCUIT_FAILURE_THRESHOLD,
    CIRCUIT_HALF_OPEN_SUCCESS_THRESHOLD,
    CIRCUIT_RECOVERY_TIMEOUT_SECONDS,
    HEALTH_MIN_SAMPLES,
    HEALTH_SLOW_RESPONSE_SECONDS,
    HEALTH_UNHEALTHY_THRESHOLD,
    HEALTH_WINDOW_SIZE,
    RATE_LIMIT_DEFAULT_RESET_SECONDS,
    RATE_LIMIT_MAX_RESET_SECONDS,
    RETRY_BASE_DELAY_SECONDS,
    RETRY_EXPONENTIAL_BASE,
    RETRY_MAX_DELAY_SECONDS,
)


class CircuitBreakerConfig(BaseModel):
    """Configuration for the per-provider circuit breaker.

    The breaker stops calls to a provider after repeated failures and
    tries it again once the recovery timeout has elapsed.

    States:
    - CLOSED: Normal operation, requests flow through
    - OPEN: Provider is failing, requests are rejected
    - HALF_OPEN: Testing recovery, successes close the circuit

    Example YAML:
        circuit_breaker:
          enabled: true
          failure_threshold: 5
          recovery_timeout_seconds: 300
          half_open_success_threshold: 2
    """

    enabled: bool = Field(
        default=True,
        description="Whether an open circuit blocks the provider. "
        "Failure and success counters still update when disabled.",
    )
    failure_threshold: int = Field(
        default=CIRCUIT_FAILURE_THRESHOLD,
        ge=1,
        le=100,
        description="Consecutive failures before the circuit opens",
    )
    recovery_timeout_seconds: float = Field(
        default=CIRCUIT_RECOVERY_TIMEOUT_SECONDS,
        gt=0,
        le=86400,
        description="Seconds in OPEN state before a trial call in HALF_OPEN",
    )
    half_open_success_threshold: int = Field(
        default=CIRCUIT_HALF_OPEN_SUCCESS_THRESHOLD,
        ge=1,
        le=100,
        description="Successes in HALF_OPEN needed to close the circuit",
    )


class RateLimitConfig(BaseModel):
    """Configuration for rate-limit windows."""

    default_reset_seconds: float = Field(
        default=RATE_LIMIT_DEFAULT_RESET_SECONDS,
        gt=0,
        le=RATE_LIMIT_MAX_RESET_SECONDS,
        description="Window length when a provider reports no reset time",
    )


class RetryConfig(BaseModel):
    """Configuration for backoff between attempts on the same provider."""

    base_delay_seconds: float = Field(
        default=RETRY_BASE_DELAY_SECONDS, ge=0, description="Delay before the second attempt"
    )
    max_delay_seconds: float = Field(
        default=RETRY_MAX_DELAY_SECONDS, ge=0, description="Upper bound on any single delay"
    )
    exponential_base: float = Field(
        default=RETRY_EXPONENTIAL_BASE, ge=1, description="Exponential backoff multiplier"
    )
    jitter: bool = Field(default=False, description="Add up to 25% randomness to delays")

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after the given (1-indexed) attempt."""
        if self.base_delay_seconds == 0:
            return 0.0
        try:
            delay = self.base_delay_seconds * self.exponential_base ** max(attempt - 1, 0)
        except OverflowError:
            return self.max_delay_seconds
        return min(delay, self.max_delay_seconds)


class HealthConfig(BaseModel):
    """Configuration for rolling provider health scores."""

    window_size: int = Field(
        default=HEALTH_WINDOW_SIZE, ge=1, le=1000, description="Outcomes that dominate the score (smoothing span)"
    )
    unhealthy_threshold: float = Field(
        default=HEALTH_UNHEALTHY_THRESHOLD,
        ge=0,
        le=100,
        description="A provider is healthy only while its score is above this",
    )
    min_samples: int = Field(
        default=HEALTH_MIN_SAMPLES,
        ge=0,
        description="Providers with fewer outcomes are always treated as healthy",
    )
    slow_response_seconds: float = Field(
        default=HEALTH_SLOW_RESPONSE_SECONDS,
        gt=0,
        description="Response duration that scores zero on the latency component",
    )
