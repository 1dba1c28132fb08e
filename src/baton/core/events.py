"""Synchronous pub/sub for orchestration events.

The ProviderManager and CircuitBreaker report usage, switches, breaker
transitions and rate limits here. Persistence of usage data is left to
subscribers; the core only emits.

Subscribers run inline in the emitting thread. A subscriber that raises is
logged and skipped; after repeated consecutive failures it is disabled so a
broken consumer cannot flood the log.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import ClassVar

from baton.core.logging import get_logger

_logger = get_logger("events")

_MAX_CONSECUTIVE_FAILURES = 10


@dataclass(frozen=True)
class Event:
    """Base class for every emitted event."""

    event_type: ClassVar[str] = "event"

    provider: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC), kw_only=True)


@dataclass(frozen=True)
class TokenUsageRecorded(Event):
    """A successful response reported token usage."""

    event_type: ClassVar[str] = "usage.recorded"

    model: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float | None = None


@dataclass(frozen=True)
class ProviderSwitched(Event):
    """The shared current provider moved from one provider to another.

    ``provider`` is the provider switched to.
    """

    event_type: ClassVar[str] = "provider.switched"

    from_provider: str | None = None
    reason: str = ""


@dataclass(frozen=True)
class CircuitStateChanged(Event):
    """A provider's circuit breaker changed state."""

    event_type: ClassVar[str] = "circuit.state_changed"

    old_state: str = ""
    new_state: str = ""
    failure_count: int = 0


@dataclass(frozen=True)
class RateLimitApplied(Event):
    """A provider was marked rate limited until ``reset_at``.

    ``model`` is set when only that model of the provider is limited.
    """

    event_type: ClassVar[str] = "rate_limit.applied"

    reset_at: datetime | None = None
    model: str | None = None


@dataclass(frozen=True)
class ModelSwitched(Event):
    """A request moved to another model of the same provider."""

    event_type: ClassVar[str] = "model.switched"

    from_model: str | None = None
    to_model: str | None = None
    reason: str = ""


EventCallback = Callable[[Event], object]
EventFilter = Callable[[Event], bool] | None


@dataclass
class _Subscriber:
    callback: EventCallback
    event_filter: EventFilter
    consecutive_failures: int = 0


class EventEmitter:
    """Delivers events to subscribers synchronously.

    Usage::

        emitter = EventEmitter()
        sub_id = emitter.subscribe(
            store.record_usage,
            event_filter=lambda e: isinstance(e, TokenUsageRecorded),
        )
        emitter.emit(TokenUsageRecorded(provider="claude", total_tokens=42))
        emitter.unsubscribe(sub_id)
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, _Subscriber] = {}
        self._lock = threading.Lock()

    def subscribe(
        self,
        callback: EventCallback,
        *,
        event_filter: EventFilter = None,
    ) -> str:
        """Register a subscriber.

        Args:
            callback: Callable receiving each matching Event.
            event_filter: Optional predicate; only events it accepts are
                delivered.

        Returns:
            Subscription ID for later unsubscribe.
        """
        sub_id = str(uuid.uuid4())
        with self._lock:
            self._subscribers[sub_id] = _Subscriber(callback=callback, event_filter=event_filter)
        _logger.debug("events.subscribed", sub_id=sub_id)
        return sub_id

    def unsubscribe(self, sub_id: str) -> bool:
        """Remove a subscriber.

        Returns:
            True if the subscriber existed and was removed.
        """
        with self._lock:
            removed = self._subscribers.pop(sub_id, None) is not None
        if removed:
            _logger.debug("events.unsubscribed", sub_id=sub_id)
        return removed

    @property
    def subscriber_count(self) -> int:
        """Number of registered subscribers, disabled ones included."""
        return len(self._subscribers)

    def emit(self, event: Event) -> None:
        """Deliver an event to every matching, enabled subscriber."""
        with self._lock:
            subscribers = list(self._subscribers.items())

        for sub_id, sub in subscribers:
            if sub.consecutive_failures >= _MAX_CONSECUTIVE_FAILURES:
                continue
            try:
                if sub.event_filter is not None and not sub.event_filter(event):
                    continue
            except Exception:
                _logger.warning(
                    "events.filter_error",
                    subscriber_id=sub_id,
                    event_type=event.event_type,
                    exc_info=True,
                )
                continue
            try:
                sub.callback(event)
                sub.consecutive_failures = 0
            except Exception:
                sub.consecutive_failures += 1
                _logger.warning(
                    "events.subscriber_error",
                    subscriber_id=sub_id,
                    event_type=event.event_type,
                    consecutive_failures=sub.consecutive_failures,
                    exc_info=True,
                )
                if sub.consecutive_failures >= _MAX_CONSECUTIVE_FAILURES:
                    _logger.error(
                        "events.subscriber_disabled",
                        subscriber_id=sub_id,
                        reason=f"{_MAX_CONSECUTIVE_FAILURES} consecutive failures",
                    )


__all__ = [
    "CircuitStateChanged",
    "Event",
    "EventCallback",
    "EventEmitter",
    "EventFilter",
    "ModelSwitched",
    "ProviderSwitched",
    "RateLimitApplied",
    "TokenUsageRecorded",
]
