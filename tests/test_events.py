"""Tests for baton.core.events module."""

from datetime import UTC, datetime

from baton.core.events import (
    CircuitStateChanged,
    EventEmitter,
    ModelSwitched,
    ProviderSwitched,
    RateLimitApplied,
    TokenUsageRecorded,
)


class TestEvents:
    def test_event_types(self):
        assert TokenUsageRecorded.event_type == "usage.recorded"
        assert ProviderSwitched.event_type == "provider.switched"
        assert CircuitStateChanged.event_type == "circuit.state_changed"
        assert RateLimitApplied.event_type == "rate_limit.applied"
        assert ModelSwitched.event_type == "model.switched"

    def test_timestamp_defaults_to_now_utc(self):
        before = datetime.now(UTC)
        event = ProviderSwitched(provider="claude", from_provider="cursor", reason="rate_limited")
        assert event.timestamp >= before
        assert event.timestamp.tzinfo is not None


class TestEventEmitter:
    def test_subscribe_and_emit(self):
        emitter = EventEmitter()
        received = []
        emitter.subscribe(received.append)

        event = TokenUsageRecorded(provider="claude", total_tokens=42)
        emitter.emit(event)

        assert received == [event]

    def test_filter(self):
        emitter = EventEmitter()
        received = []
        emitter.subscribe(
            received.append,
            event_filter=lambda e: isinstance(e, RateLimitApplied),
        )

        emitter.emit(TokenUsageRecorded(provider="claude"))
        emitter.emit(RateLimitApplied(provider="claude"))

        assert [type(e) for e in received] == [RateLimitApplied]

    def test_unsubscribe(self):
        emitter = EventEmitter()
        received = []
        sub_id = emitter.subscribe(received.append)

        assert emitter.unsubscribe(sub_id) is True
        assert emitter.unsubscribe(sub_id) is False
        emitter.emit(TokenUsageRecorded(provider="claude"))

        assert received == []
        assert emitter.subscriber_count == 0

    def test_failing_subscriber_does_not_block_others(self):
        emitter = EventEmitter()
        received = []

        def broken(event):
            raise RuntimeError("subscriber bug")

        emitter.subscribe(broken)
        emitter.subscribe(received.append)
        emitter.emit(ProviderSwitched(provider="claude"))

        assert len(received) == 1

    def test_failing_filter_skips_subscriber(self):
        emitter = EventEmitter()
        received = []
        emitter.subscribe(received.append, event_filter=lambda e: 1 / 0)
        emitter.emit(ProviderSwitched(provider="claude"))
        assert received == []

    def test_subscriber_disabled_after_repeated_failures(self):
        emitter = EventEmitter()
        calls = []

        def broken(event):
            calls.append(event)
            raise RuntimeError("subscriber bug")

        emitter.subscribe(broken)
        for _ in range(15):
            emitter.emit(ProviderSwitched(provider="claude"))

        assert len(calls) == 10

    def test_success_resets_failure_streak(self):
        emitter = EventEmitter()
        calls = []

        def flaky(event):
            calls.append(event)
            if len(calls) % 5 == 0:
                return
            raise RuntimeError("flaky")

        emitter.subscribe(flaky)
        for _ in range(20):
            emitter.emit(ProviderSwitched(provider="claude"))

        assert len(calls) == 20
