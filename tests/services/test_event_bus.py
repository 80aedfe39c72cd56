"""Event bus: subscription lifecycle, safe delivery, bounded history."""

import asyncio

import pytest

from workflow_kernel.logging_config import LogContext
from workflow_services.event_bus import (
    EventBus,
    StateChangedEvent,
    get_event_bus,
    reset_event_bus,
)


class TestSubscription:

    def test_handler_receives_event(self, event_bus, deterministic_clock):
        received = []
        event_bus.subscribe("ping", received.append)

        event_bus.publish("ping", {"n": 1})

        assert len(received) == 1
        assert received[0].type == "ping"
        assert received[0].payload == {"n": 1}
        assert received[0].timestamp == deterministic_clock.now()

    def test_unsubscribe(self, event_bus):
        received = []
        unsubscribe = event_bus.subscribe("ping", received.append)

        unsubscribe()
        unsubscribe()
        event_bus.publish("ping", None)

        assert received == []
        assert event_bus.handler_count("ping") == 0

    def test_wildcard_sees_every_type(self, event_bus):
        received = []
        event_bus.subscribe_any(lambda e: received.append(e.type))

        event_bus.publish("a", None)
        event_bus.publish("b", None)

        assert received == ["a", "b"]

    def test_once_fires_a_single_time(self, event_bus):
        received = []
        event_bus.once("ping", received.append)

        event_bus.publish("ping", 1)
        event_bus.publish("ping", 2)

        assert [e.payload for e in received] == [1]

    def test_disabled_bus_drops_events(self, event_bus):
        received = []
        event_bus.subscribe("ping", received.append)
        event_bus.enabled = False

        event_bus.publish("ping", None)

        assert received == []
        assert event_bus.history == ()

    def test_clear(self, event_bus):
        event_bus.subscribe("ping", lambda e: None)
        event_bus.publish("ping", None)

        event_bus.clear()

        assert event_bus.handler_count() == 0
        assert event_bus.history == ()


class TestDelivery:

    def test_failing_handler_does_not_block_others(self, event_bus, captured_logs):
        received = []

        def broken(event):
            raise RuntimeError("nope")

        event_bus.subscribe("ping", broken)
        event_bus.subscribe("ping", received.append)

        event_bus.publish("ping", None)

        assert len(received) == 1
        assert any(r["message"] == "event_handler_failed" for r in captured_logs())

    def test_meta_carries_log_context(self, event_bus):
        received = []
        event_bus.subscribe("ping", received.append)

        with LogContext.bind(correlation_id="req-1"):
            event_bus.publish("ping", None, meta={"source": "test"})

        assert received[0].meta == {"correlation_id": "req-1", "source": "test"}

    @pytest.mark.asyncio
    async def test_async_handler_is_scheduled(self, event_bus):
        received = []

        async def handler(event):
            received.append(event.payload)

        event_bus.subscribe("ping", handler)
        event_bus.publish("ping", "hello")
        assert received == []

        await asyncio.sleep(0)

        assert received == ["hello"]

    @pytest.mark.asyncio
    async def test_async_handler_failure_is_logged(self, event_bus, captured_logs):
        async def handler(event):
            raise ValueError("async boom")

        event_bus.subscribe("ping", handler)
        event_bus.publish("ping", None)
        for _ in range(3):
            await asyncio.sleep(0)

        failures = [r for r in captured_logs() if r["message"] == "event_handler_failed"]
        assert failures and failures[0]["error"] == "async boom"

    def test_async_handler_without_loop_is_dropped(self, event_bus, captured_logs):
        async def handler(event):
            pass

        event_bus.subscribe("ping", handler)
        event_bus.publish("ping", None)

        assert any(r["message"] == "event_handler_not_scheduled" for r in captured_logs())


class TestHistory:

    def test_most_recent_first_and_bounded(self):
        bus = EventBus(history_size=2)

        for n in range(3):
            bus.publish("tick", n)

        assert [e.payload for e in bus.history] == [2, 1]

    def test_clear_history(self, event_bus):
        event_bus.publish("tick", 1)

        event_bus.clear_history()

        assert event_bus.history == ()


class TestDefaultBus:

    def test_is_shared_until_reset(self):
        first = get_event_bus()

        assert get_event_bus() is first
        reset_event_bus()
        assert get_event_bus() is not first


def test_state_changed_dict_shape():
    payload = StateChangedEvent("invoice", 12, "sent", "paid", "RECORD_PAYMENT")

    assert payload.to_dict() == {
        "workflowId": "invoice",
        "recordId": 12,
        "from": "sent",
        "to": "paid",
        "event": "RECORD_PAYMENT",
    }
