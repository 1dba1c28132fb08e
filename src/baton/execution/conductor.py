"""Request orchestration: send one prompt, fail over until it succeeds.

Each ``send_message`` call is one sequential loop:

    attempting(provider, model, n)
      -> done                                  (Response)
      -> deciding
           switch_model       -> attempting(same, next model, n+1)
           switch_provider    -> attempting(next, n+1)
           retry_with_backoff -> attempting(same, n+1) after backoff
           escalate           -> failed (classified ProviderError)
           exhausted          -> failed (NoProvidersAvailableError)

Decisions by category:
- rate_limited / quota_exceeded: try the provider's next configured model
  unless the caller pinned one, then switch; with no fallback, back off
  and retry the same provider while attempts remain.
- auth_expired, provider unavailable, circuit open: switch; with no
  fallback, fail immediately.
- timeout / transient: back off and retry the same provider, unless that
  failure opened its circuit, in which case switch.
- permanent / unknown: escalate with the attempt history attached.

Every failure is recorded in the ProviderManager before deciding, so
breaker and health state reflect it even when a later attempt succeeds.
A rate limit on a configured model limits only that model while another
model of the provider is left; after that the provider itself is limited.
Cancellation is never caught; the executor kills the subprocess and the
CancelledError propagates.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import Any

from baton.core.clock import Clock
from baton.core.config import OrchestratorConfig, RetryConfig
from baton.core.errors import (
    AttemptRecord,
    CircuitOpenError,
    ErrorCategory,
    NoProvidersAvailableError,
    ProviderError,
    ProviderUnavailableError,
    RecommendedAction,
)
from baton.core.events import EventEmitter
from baton.core.logging import RequestContext, get_logger, with_context
from baton.execution.provider_manager import ProviderManager
from baton.providers.base import Provider, Response, SendOptions
from baton.providers.executor import CommandExecutor
from baton.providers.registry import ProviderRegistry

_logger = get_logger("conductor")

SleepFunc = Callable[[float], Awaitable[Any]]

# Categories that try another model first and retry the same provider when no fallback exists
_WAIT_WHEN_ALONE = frozenset({ErrorCategory.RATE_LIMITED, ErrorCategory.QUOTA_EXCEEDED})

# Categories that rule a provider out for the rest of the request
_SKIP_FOR_REQUEST = frozenset({ErrorCategory.AUTH_EXPIRED, ErrorCategory.QUOTA_EXCEEDED})

_JITTER_FACTOR = 0.25


@dataclass
class _Request:
    """Mutable state of one ``send_message`` call."""

    options: SendOptions
    max_attempts: int
    attempts: list[AttemptRecord] = field(default_factory=list)
    skip: set[str] = field(default_factory=set)
    tried_models: dict[str, set[str]] = field(default_factory=dict)

    @property
    def pinned(self) -> bool:
        """The caller asked for a specific model."""
        return self.options.model is not None

    def tried(self, provider: str) -> set[str]:
        return self.tried_models.setdefault(provider, set())


class Conductor:
    """Sends prompts through the ProviderManager's providers with failover.

    Usage::

        conductor = Conductor.from_config(load_config())
        response = await conductor.send_message("Summarize the diff", model="sonnet")
    """

    def __init__(
        self,
        manager: ProviderManager,
        retry: RetryConfig | None = None,
        sleep: SleepFunc = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.manager = manager
        self.retry = retry or manager.config.retry
        self._sleep = sleep
        self._rng = rng or random.Random()

    @classmethod
    def from_config(
        cls,
        config: OrchestratorConfig,
        registry: ProviderRegistry | None = None,
        executor: CommandExecutor | None = None,
        clock: Clock | None = None,
        emitter: EventEmitter | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> Conductor:
        manager = ProviderManager(
            config, registry=registry, executor=executor, clock=clock, emitter=emitter
        )
        return cls(manager, retry=config.retry, sleep=sleep)

    def backoff_delay(self, attempt: int) -> float:
        """Delay after the given (1-indexed) attempt, with optional jitter."""
        delay = self.retry.delay_for(attempt)
        if self.retry.jitter:
            delay += delay * _JITTER_FACTOR * self._rng.random()
        return min(delay, self.retry.max_delay_seconds)

    async def send_message(
        self,
        prompt: str,
        provider: str | None = None,
        **options: Any,
    ) -> Response:
        """Send a prompt and return the first successful Response.

        Args:
            prompt: Prompt text. Never logged, only its length.
            provider: Preferred provider (name or alias) for this request.
            **options: SendOptions fields: model, timeout, dangerous_mode,
                session. A ``model`` pins the request to that model.

        Raises:
            ProviderError: A permanent or unknown failure, with ``attempts``.
            NoProvidersAvailableError: Every option was exhausted.
            ConfigurationError: ``provider`` is not an enabled provider.
        """
        send_options = SendOptions(**options)
        ctx = RequestContext(component="conductor")
        with with_context(ctx):
            return await self._run(prompt, provider, send_options, ctx)

    async def _run(
        self,
        prompt: str,
        preferred: str | None,
        options: SendOptions,
        ctx: RequestContext,
    ) -> Response:
        request = _Request(options=options, max_attempts=self.manager.max_attempts)
        current = self.manager.select_provider(preferred)
        model = self._pick_model(current, request)

        _logger.info(
            "request_started",
            provider=current.name,
            model=model,
            prompt_length=len(prompt),
            max_attempts=request.max_attempts,
        )

        attempt = 0
        while True:
            attempt += 1
            with with_context(ctx.with_attempt(current.name, attempt)):
                try:
                    response = await self._attempt(
                        current, prompt, replace(options, model=model)
                    )
                except ProviderError as e:
                    error = e
                else:
                    self.manager.record_success(current.name, response)
                    _logger.info(
                        "request_completed",
                        attempts=attempt,
                        duration_seconds=round(response.duration_seconds, 3),
                    )
                    return response

                request.attempts.append(
                    AttemptRecord(
                        provider=current.name,
                        attempt=attempt,
                        category=error.category,
                        message=error.message,
                        model=model,
                    )
                )
                if model is not None and not request.pinned:
                    request.tried(current.name).add(model)
                self._record(current, model, error, request)
                current, model = await self._decide(current, model, error, attempt, request)

    async def _attempt(self, provider: Provider, prompt: str, options: SendOptions) -> Response:
        if self.manager.is_circuit_open(provider.name):
            raise CircuitOpenError(
                provider.name, retry_after=self.manager.breaker(provider.name).time_until_retry()
            )
        _logger.debug("attempt_started", model=options.model)
        return await provider.send_message(prompt, options)

    def _pick_model(self, provider: Provider, request: _Request) -> str | None:
        """Model for the next attempt on ``provider``.

        A pinned model always wins. Otherwise the first configured model that
        is neither rate limited nor tried in this request, then the first
        unlimited one; None leaves the choice to the provider.
        """
        if request.pinned:
            return request.options.model
        return self.manager.select_model(
            provider.name, exclude=request.tried(provider.name)
        ) or self.manager.select_model(provider.name)

    def _record(
        self,
        provider: Provider,
        model: str | None,
        error: ProviderError,
        request: _Request,
    ) -> None:
        """Record a failure in breaker, health and rate-limit state."""
        rate_limited = error.category is ErrorCategory.RATE_LIMITED
        _logger.warning(
            "attempt_failed",
            category=error.category.value,
            model=model,
            error=error.message,
        )
        if isinstance(error, CircuitOpenError):
            # The provider was never called
            return
        self.manager.record_failure(provider.name, rate_limited=rate_limited)
        if not rate_limited:
            return
        reset_at = getattr(error, "reset_time", None)
        if model is not None and not request.pinned:
            self.manager.mark_model_rate_limited(provider.name, model, reset_at)
            if self.manager.select_model(provider.name, exclude=request.tried(provider.name)):
                return
        self.manager.mark_rate_limited(provider.name, reset_at)

    async def _decide(
        self,
        current: Provider,
        model: str | None,
        error: ProviderError,
        attempt: int,
        request: _Request,
    ) -> tuple[Provider, str | None]:
        """Pick the provider and model for the next attempt, sleeping if backing off.

        Raises the terminal error when the request cannot continue.
        """
        category = error.category
        unavailable = isinstance(error, (ProviderUnavailableError, CircuitOpenError))

        if category.action is RecommendedAction.ESCALATE and not unavailable:
            _logger.error("request_escalated", category=category.value, attempts=attempt)
            error.attempts = list(request.attempts)
            raise error

        if attempt >= request.max_attempts:
            raise self._exhausted(
                f"all {request.max_attempts} attempts failed", request.attempts
            )

        if (
            category in _WAIT_WHEN_ALONE
            and not unavailable
            and not request.pinned
            and not self.manager.is_circuit_open(current.name)
        ):
            next_model = self.manager.switch_model(
                current.name,
                reason=category.value,
                from_model=model,
                exclude=request.tried(current.name),
            )
            if next_model is not None:
                return current, next_model

        switch = (
            unavailable
            or category.action is RecommendedAction.SWITCH_PROVIDER
            or self.manager.is_circuit_open(current.name)
        )
        if not switch:
            await self._backoff(attempt)
            return current, model

        if unavailable or category in _SKIP_FOR_REQUEST:
            request.skip.add(current.name)
        target = self.manager.switch_provider(
            reason=category.value, from_provider=current.name, skip=request.skip
        )
        if target is not None:
            provider = self.manager.get_provider(target)
            return provider, self._pick_model(provider, request)

        if category in _WAIT_WHEN_ALONE and not unavailable:
            await self._backoff(attempt)
            return current, self._pick_model(current, request)

        raise self._exhausted("no fallback provider available", request.attempts)

    async def _backoff(self, attempt: int) -> None:
        delay = self.backoff_delay(attempt)
        _logger.info("backoff", delay_seconds=round(delay, 3))
        await self._sleep(delay)

    def _exhausted(self, reason: str, attempts: list[AttemptRecord]) -> NoProvidersAvailableError:
        error = NoProvidersAvailableError(
            reason,
            attempts=attempts,
            next_reset_time=self.manager.next_reset_time(),
        )
        _logger.error(
            "request_failed",
            reason=reason,
            attempted_providers=error.attempted_providers,
            attempts=len(attempts),
        )
        return error
