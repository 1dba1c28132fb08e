"""Shared provider state: selection, fallback order and failure bookkeeping.

The ProviderManager owns one CircuitBreaker and one RateLimiter per enabled
provider plus a HealthMonitor. It decides which provider is available and
in which order to fall back; it never calls a provider itself.

Models listed under a provider get their own RateLimiter, created on the
first limit, so one exhausted model does not take the whole provider out.

Fallback order for a request is the explicit ``fallback_providers`` list
first, then every other enabled provider by ``priority`` (then name),
deduplicated and excluding the provider being replaced.

Lock ordering:
  1. ProviderManager._lock (re-entrant)
  2. CircuitBreaker._lock / RateLimiter._lock / HealthMonitor._lock
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from threading import RLock

from baton.core.clock import Clock, SystemClock
from baton.core.config import OrchestratorConfig, ProviderConfig
from baton.core.constants import MIN_MAX_ATTEMPTS
from baton.core.errors import ConfigurationError, NoProvidersAvailableError
from baton.core.events import (
    CircuitStateChanged,
    EventEmitter,
    ModelSwitched,
    ProviderSwitched,
    RateLimitApplied,
    TokenUsageRecorded,
)
from baton.core.logging import get_logger
from baton.execution.circuit_breaker import CircuitBreaker, CircuitState
from baton.execution.health import HealthMonitor
from baton.execution.rate_limiter import RateLimiter, earliest_reset
from baton.providers.base import Provider, Response
from baton.providers.executor import CommandExecutor
from baton.providers.registry import ProviderRegistry, default_registry

_logger = get_logger("provider_manager")


@dataclass(frozen=True)
class ProviderStatus:
    """One row of ``ProviderManager.status()``."""

    name: str
    enabled: bool
    installed: bool
    priority: int
    kind: str
    circuit_state: str
    rate_limited_until: datetime | None
    health_score: float
    healthy: bool
    available: bool
    current: bool
    reason: str | None = None
    limited_models: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedConfig:
    """Provider names of an OrchestratorConfig resolved to canonical form."""

    default_provider: str
    fallback_providers: list[str]
    providers: dict[str, ProviderConfig]


def resolve_config(
    config: OrchestratorConfig,
    registry: ProviderRegistry,
    known: Iterable[str] = (),
) -> ResolvedConfig:
    """Check cross-references in a config and canonicalize provider names.

    Args:
        config: Configuration to check.
        registry: Registry used to resolve names and aliases.
        known: Extra names accepted as-is (injected providers).

    Raises:
        ConfigurationError: On unknown, duplicate or disabled references.
    """
    extra = {name.lower() for name in known}

    def canonical(name: str) -> str:
        key = name.lower()
        if key in extra:
            return key
        resolved = registry.canonical_name(key)
        if resolved is None:
            known_names = ", ".join(sorted(set(registry.names()) | extra))
            raise ConfigurationError(f"unknown provider '{name}' (known: {known_names})")
        return resolved

    providers: dict[str, ProviderConfig] = {}
    for name, provider_config in config.providers.items():
        key = canonical(name)
        if key in providers:
            raise ConfigurationError(f"provider '{key}' is configured more than once (as '{name}')")
        providers[key] = provider_config

    default = canonical(config.default_provider)
    if default not in providers:
        raise ConfigurationError(
            f"default provider '{config.default_provider}' is not configured under providers"
        )
    if not providers[default].enabled:
        raise ConfigurationError(f"default provider '{default}' is disabled")

    fallbacks: list[str] = []
    for name in config.fallback_providers:
        key = canonical(name)
        if key not in providers:
            raise ConfigurationError(
                f"fallback provider '{name}' is not configured under providers"
            )
        if key not in fallbacks:
            fallbacks.append(key)

    return ResolvedConfig(default_provider=default, fallback_providers=fallbacks, providers=providers)


class ProviderManager:
    """Tracks availability of every configured provider.

    Thread-safe: all mutations and compound reads hold one re-entrant lock,
    so concurrent Conductor requests see consistent state.

    Usage::

        manager = ProviderManager(config)
        provider = manager.select_provider()
        ...
        manager.record_failure(provider.name, rate_limited=True)
        manager.mark_rate_limited(provider.name, reset_at)
        next_name = manager.switch_provider("rate_limited", from_provider=provider.name)
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        registry: ProviderRegistry | None = None,
        executor: CommandExecutor | None = None,
        clock: Clock | None = None,
        emitter: EventEmitter | None = None,
        providers: Mapping[str, Provider] | None = None,
    ) -> None:
        self.config = config
        self.registry = registry or default_registry
        self.clock = clock or SystemClock()
        self.emitter = emitter or EventEmitter()
        injected = {name.lower(): p for name, p in (providers or {}).items()}

        resolved = resolve_config(config, self.registry, known=injected)
        self._configs = resolved.providers
        self._fallbacks = [n for n in resolved.fallback_providers if self._configs[n].enabled]
        self._default = resolved.default_provider
        self._current = self._default

        executor = executor or CommandExecutor()
        self._providers: dict[str, Provider] = {}
        self._breakers: dict[str, CircuitBreaker] = {}
        self._limiters: dict[str, RateLimiter] = {}
        self._model_limiters: dict[tuple[str, str], RateLimiter] = {}
        for name, provider_config in self._configs.items():
            if not provider_config.enabled:
                continue
            self._providers[name] = injected.get(name) or self.registry.create(
                name, config=provider_config, executor=executor
            )
            lookup = self._original_name(name)
            self._breakers[name] = CircuitBreaker.from_config(
                name,
                config.circuit_breaker_for(lookup),
                clock=self.clock,
                on_state_change=self._on_circuit_change,
            )
            self._limiters[name] = RateLimiter.from_config(
                name, config.rate_limit_for(lookup), clock=self.clock
            )
        self.health = HealthMonitor.from_config(config.health)

        self._lock = RLock()

        _logger.debug(
            "provider_manager.initialized",
            default_provider=self._default,
            fallback_providers=self._fallbacks,
            enabled=list(self._providers),
        )

    def _original_name(self, canonical: str) -> str:
        """Key under which a canonical provider appears in the raw config."""
        for name in self.config.providers:
            if name.lower() == canonical or self.registry.canonical_name(name) == canonical:
                return name
        return canonical

    # ─── Lookup ────────────────────────────────────────────────────

    @property
    def default_provider(self) -> str:
        return self._default

    @property
    def current_provider(self) -> str:
        with self._lock:
            return self._current

    @property
    def provider_names(self) -> list[str]:
        """Enabled providers in configuration order."""
        return list(self._providers)

    @property
    def max_attempts(self) -> int:
        """Attempts per request: the config override or max(enabled, 2)."""
        if self.config.max_attempts is not None:
            return self.config.max_attempts
        return max(len(self._providers), MIN_MAX_ATTEMPTS)

    def canonical_name(self, name: str) -> str:
        """Resolve a name or alias to an enabled provider.

        Raises:
            ConfigurationError: If the name is unknown or not enabled.
        """
        key = name.lower()
        if key not in self._providers:
            key = self.registry.canonical_name(key) or key
        if key not in self._providers:
            raise ConfigurationError(f"provider '{name}' is not configured or not enabled")
        return key

    def get_provider(self, name: str) -> Provider:
        return self._providers[self.canonical_name(name)]

    def breaker(self, name: str) -> CircuitBreaker:
        return self._breakers[self.canonical_name(name)]

    # ─── Availability ──────────────────────────────────────────────

    def is_circuit_open(self, name: str) -> bool:
        return self.breaker(name).is_open()

    def is_rate_limited(self, name: str) -> bool:
        return self._limiters[self.canonical_name(name)].is_limited()

    def is_available(self, name: str) -> bool:
        return self.unavailable_reason(name) is None

    def unavailable_reason(self, name: str) -> str | None:
        """Why a provider cannot be selected right now, or None if it can."""
        key = name.lower()
        if key not in self._providers:
            key = self.registry.canonical_name(key) or key
        if key not in self._providers:
            return "not configured or disabled"
        with self._lock:
            if not self._providers[key].available():
                return f"{self._providers[key].binary} is not installed"
            breaker = self._breakers[key]
            if breaker.is_open():
                retry_in = breaker.time_until_retry() or 0.0
                return f"circuit open (retry in {retry_in:.0f}s)"
            reset = self._limiters[key].reset_time()
            if reset is not None:
                return f"rate limited until {reset.isoformat()}"
            if not self.health.is_healthy(key):
                return f"unhealthy (score {self.health.health_score(key):.0f})"
            return None

    def next_reset_time(self) -> datetime | None:
        """Earliest rate-limit reset across all providers."""
        with self._lock:
            return earliest_reset(self._limiters.values())

    # ─── Selection ─────────────────────────────────────────────────

    def fallback_chain(self, current: str | None = None) -> list[str]:
        """Fallback order after ``current``, unfiltered by availability."""
        with self._lock:
            excluded = self.canonical_name(current) if current else None
            by_priority = sorted(
                self._providers, key=lambda n: (self._configs[n].priority, n)
            )
            chain: list[str] = []
            for name in [*self._fallbacks, *by_priority]:
                if name != excluded and name not in chain:
                    chain.append(name)
            return chain

    def select_fallback(self, excluding: str | None, skip: Iterable[str] = ()) -> Provider | None:
        """First available provider in the fallback chain after ``excluding``."""
        skipped = {self.canonical_name(n) for n in skip}
        with self._lock:
            for name in self.fallback_chain(excluding):
                if name in skipped:
                    continue
                if self.is_available(name):
                    return self._providers[name]
        return None

    def select_provider(self, preferred: str | None = None) -> Provider:
        """Provider for a new request.

        Uses ``preferred`` (or the current provider) when available and
        otherwise the first available fallback.

        Raises:
            ConfigurationError: If ``preferred`` is not an enabled provider.
            NoProvidersAvailableError: If no provider is available.
        """
        with self._lock:
            name = self.canonical_name(preferred) if preferred else self._current
            if self.is_available(name):
                return self._providers[name]

            fallback = self.select_fallback(name)
            if fallback is not None:
                _logger.info(
                    "provider_manager.preferred_unavailable",
                    preferred=name,
                    selected=fallback.name,
                    reason=self.unavailable_reason(name),
                )
                return fallback

            reasons = {
                n: reason
                for n in [name, *self.fallback_chain(name)]
                if (reason := self.unavailable_reason(n)) is not None
            }
            raise NoProvidersAvailableError(
                "every configured provider is unavailable",
                next_reset_time=self.next_reset_time(),
                unavailable=reasons,
            )

    def switch_provider(
        self,
        reason: str,
        from_provider: str | None = None,
        skip: Iterable[str] = (),
    ) -> str | None:
        """Move the shared current provider to the next available fallback.

        Returns:
            The new current provider, or None if no fallback is available
            (the current provider is left unchanged).
        """
        with self._lock:
            origin = self.canonical_name(from_provider) if from_provider else self._current
            target = self.select_fallback(origin, skip=skip)
            if target is None:
                _logger.warning(
                    "provider_manager.no_fallback",
                    from_provider=origin,
                    reason=reason,
                )
                return None
            self._current = target.name

        _logger.info(
            "provider_manager.switched",
            from_provider=origin,
            to_provider=target.name,
            reason=reason,
        )
        self.emitter.emit(
            ProviderSwitched(provider=target.name, from_provider=origin, reason=reason)
        )
        return target.name

    # ─── Models ────────────────────────────────────────────────────

    def models(self, name: str) -> list[str]:
        """Configured models of a provider, in fallback order."""
        return list(self._configs[self.canonical_name(name)].models)

    def is_model_rate_limited(self, name: str, model: str) -> bool:
        key = self.canonical_name(name)
        with self._lock:
            limiter = self._model_limiters.get((key, model))
            return limiter is not None and limiter.is_limited()

    def select_model(self, name: str, exclude: Iterable[str] = ()) -> str | None:
        """First configured model of a provider that is not rate limited.

        Returns None when the provider lists no models or every model is
        limited or in ``exclude``.
        """
        key = self.canonical_name(name)
        excluded = set(exclude)
        with self._lock:
            for model in self._configs[key].models:
                if model not in excluded and not self.is_model_rate_limited(key, model):
                    return model
        return None

    def switch_model(
        self,
        name: str,
        reason: str,
        from_model: str | None = None,
        exclude: Iterable[str] = (),
    ) -> str | None:
        """Next model of the same provider for a request that failed on ``from_model``.

        Model choice is per request; only the model rate limits are shared.

        Returns:
            The model to try next, or None if the provider has none left.
        """
        key = self.canonical_name(name)
        excluded = set(exclude)
        if from_model is not None:
            excluded.add(from_model)
        target = self.select_model(key, exclude=excluded)
        if target is None:
            _logger.debug(
                "provider_manager.no_model_fallback",
                provider=key,
                from_model=from_model,
                reason=reason,
            )
            return None

        _logger.info(
            "provider_manager.model_switched",
            provider=key,
            from_model=from_model,
            to_model=target,
            reason=reason,
        )
        self.emitter.emit(
            ModelSwitched(provider=key, from_model=from_model, to_model=target, reason=reason)
        )
        return target

    def mark_model_rate_limited(
        self, name: str, model: str, reset_at: datetime | None = None
    ) -> datetime:
        """Mark one model of a provider rate limited; returns the effective reset time."""
        key = self.canonical_name(name)
        with self._lock:
            limiter = self._model_limiters.get((key, model))
            if limiter is None:
                limiter = RateLimiter.from_config(
                    f"{key}/{model}",
                    self.config.rate_limit_for(self._original_name(key)),
                    clock=self.clock,
                )
                self._model_limiters[(key, model)] = limiter
            effective = limiter.mark_limited(reset_at)
        self.emitter.emit(RateLimitApplied(provider=key, reset_at=effective, model=model))
        return effective

    def limited_models(self, name: str) -> list[str]:
        """Configured models of a provider that are currently rate limited."""
        key = self.canonical_name(name)
        with self._lock:
            return [m for m in self._configs[key].models if self.is_model_rate_limited(key, m)]

    # ─── Outcomes ──────────────────────────────────────────────────

    def record_success(self, name: str, response: Response | None = None) -> None:
        key = self.canonical_name(name)
        with self._lock:
            self._breakers[key].record_success()
            self.health.record_success(
                key, response.duration_seconds if response is not None else None
            )

        if response is not None and response.usage is not None:
            usage = response.usage
            self.emitter.emit(
                TokenUsageRecorded(
                    provider=key,
                    model=response.model,
                    input_tokens=usage.input_tokens,
                    output_tokens=usage.output_tokens,
                    total_tokens=usage.total_tokens,
                    cost_usd=usage.cost_usd,
                )
            )

    def record_failure(self, name: str, rate_limited: bool = False) -> None:
        key = self.canonical_name(name)
        with self._lock:
            self._breakers[key].record_failure()
            self.health.record_failure(key, rate_limited=rate_limited)

    def mark_rate_limited(self, name: str, reset_at: datetime | None = None) -> datetime:
        """Mark a provider rate limited; returns the effective reset time."""
        key = self.canonical_name(name)
        with self._lock:
            effective = self._limiters[key].mark_limited(reset_at)
        self.emitter.emit(RateLimitApplied(provider=key, reset_at=effective))
        return effective

    def _on_circuit_change(
        self, name: str, old: CircuitState, new: CircuitState, failure_count: int
    ) -> None:
        self.emitter.emit(
            CircuitStateChanged(
                provider=name,
                old_state=old.value,
                new_state=new.value,
                failure_count=failure_count,
            )
        )

    # ─── Reporting ─────────────────────────────────────────────────

    def status(self) -> list[ProviderStatus]:
        """One row per configured provider, in configuration order."""
        rows: list[ProviderStatus] = []
        with self._lock:
            for name, provider_config in self._configs.items():
                if name not in self._providers:
                    rows.append(
                        ProviderStatus(
                            name=name,
                            enabled=False,
                            installed=False,
                            priority=provider_config.priority,
                            kind=provider_config.kind,
                            circuit_state=CircuitState.CLOSED.value,
                            rate_limited_until=None,
                            health_score=100.0,
                            healthy=True,
                            available=False,
                            current=False,
                            reason="disabled",
                        )
                    )
                    continue
                reason = self.unavailable_reason(name)
                rows.append(
                    ProviderStatus(
                        name=name,
                        enabled=True,
                        installed=self._providers[name].available(),
                        priority=provider_config.priority,
                        kind=provider_config.kind,
                        circuit_state=self._breakers[name].state.value,
                        rate_limited_until=self._limiters[name].reset_time(),
                        health_score=self.health.health_score(name),
                        healthy=self.health.is_healthy(name),
                        available=reason is None,
                        current=name == self._current,
                        reason=reason,
                        limited_models=tuple(self.limited_models(name)),
                    )
                )
        return rows
