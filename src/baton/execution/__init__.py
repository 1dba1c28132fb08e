"""Orchestration: circuit breakers, rate limits, health, selection and failover."""

from baton.execution.circuit_breaker import CircuitBreaker, CircuitBreakerStats, CircuitState
from baton.execution.conductor import Conductor
from baton.execution.health import HealthMonitor, HealthRecord
from baton.execution.provider_manager import (
    ProviderManager,
    ProviderStatus,
    ResolvedConfig,
    resolve_config,
)
from baton.execution.rate_limiter import RateLimiter, earliest_reset

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerStats",
    "CircuitState",
    "Conductor",
    "HealthMonitor",
    "HealthRecord",
    "ProviderManager",
    "ProviderStatus",
    "RateLimiter",
    "ResolvedConfig",
    "earliest_reset",
    "resolve_config",
]
