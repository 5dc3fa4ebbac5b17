"""Tests for EventBus: subscribe, publish, ordering, fault isolation, reentrancy, destroy."""

import logging
from typing import Any

import pytest

from busflow.events import Event, EventBus, get_default_bus, reset_default_bus


class Recorder:
    """Listener that records (subscription_id, topic, data, closure, custom_data)."""

    def __init__(self, log: list | None = None, name: str = "") -> None:
        self.calls: list[tuple[str, str, Any, Any, Any]] = []
        self._log = log
        self._name = name

    def __call__(self, sid: str, topic: str, data: Any, closure: Any, custom: Any) -> None:
        self.calls.append((sid, topic, data, closure, custom))
        if self._log is not None:
            self._log.append(self._name)


class TestEventBusPublishSubscribe:
    """Publish and subscribe basics."""

    def test_exact_topic_delivers_once(self, bus: EventBus) -> None:
        listener = Recorder()
        bus.subscribe("sub1", "A.B", listener)

        bus.publish("A.B", {"x": 1})
        bus.publish("A.C", {"x": 2})

        assert listener.calls == [("sub1", "A.B", {"x": 1}, None, None)]

    def test_wildcard_topic_delivers(self, bus: EventBus) -> None:
        listener = Recorder()
        bus.subscribe("sub1", "A.*", listener)

        bus.publish("A.B", 1)
        bus.publish("A.B.C", 2)
        bus.publish("Z.B", 3)

        assert [c[1] for c in listener.calls] == ["A.B", "A.B.C"]

    def test_closure_and_custom_data_passed_through(self, bus: EventBus) -> None:
        listener = Recorder()
        owner = object()
        bus.subscribe("sub1", "T", listener, closure=owner, custom_data={"k": "v"})

        bus.publish("T", None)

        assert listener.calls[0][3] is owner
        assert listener.calls[0][4] == {"k": "v"}

    def test_publish_returns_event(self, bus: EventBus) -> None:
        event = bus.publish("T", 42, metadata={"source": "test"})
        assert isinstance(event, Event)
        assert event.topic == "T"
        assert event.data == 42
        assert event.metadata == {"source": "test"}
        assert event.timestamp > 0

    def test_publish_without_subscribers_is_fine(self, bus: EventBus) -> None:
        bus.publish("orphan.topic", {})
        assert len(bus.get_history("orphan.topic")) == 1

    def test_registration_order(self, bus: EventBus) -> None:
        order: list[str] = []
        bus.subscribe("l1", "T", Recorder(order, "L1"))
        bus.subscribe("l2", "T", Recorder(order, "L2"))
        bus.subscribe("l3", "T*", Recorder(order, "L3"))

        bus.publish("T", None)

        assert order == ["L1", "L2", "L3"]


class TestEventBusRegistry:
    """Subscription id uniqueness and removal."""

    def test_duplicate_id_keeps_first(
        self, bus: EventBus, caplog: pytest.LogCaptureFixture
    ) -> None:
        first, second = Recorder(), Recorder()
        bus.subscribe("dup", "T", first)
        with caplog.at_level(logging.WARNING):
            bus.subscribe("dup", "T", second)

        bus.publish("T", 1)

        assert len(first.calls) == 1
        assert second.calls == []
        assert "already exists" in caplog.text
        assert bus.list_active_subscription_ids() == ["dup"]

    def test_unsubscribe_is_idempotent(self, bus: EventBus) -> None:
        listener = Recorder()
        bus.subscribe("s", "T", listener)

        bus.unsubscribe("s")
        bus.unsubscribe("s")
        bus.unsubscribe("never-registered")
        bus.publish("T", 1)

        assert listener.calls == []
        assert bus.list_active_subscription_ids() == []

    def test_unsubscribe_all(self, bus: EventBus) -> None:
        for i in range(3):
            bus.subscribe(f"s{i}", "T", Recorder())
        bus.unsubscribe_all()
        assert bus.list_active_subscription_ids() == []

    def test_list_active_in_registration_order(self, bus: EventBus) -> None:
        bus.subscribe("b", "T", Recorder())
        bus.subscribe("a", "T", Recorder())
        assert bus.list_active_subscription_ids() == ["b", "a"]
        assert bus.is_subscribed("a") is True
        assert bus.is_subscribed("zzz") is False

    def test_id_can_be_reused_after_unsubscribe(self, bus: EventBus) -> None:
        first, second = Recorder(), Recorder()
        bus.subscribe("s", "T", first)
        bus.unsubscribe("s")
        bus.subscribe("s", "T", second)

        bus.publish("T", 1)

        assert first.calls == []
        assert len(second.calls) == 1


class TestEventBusFaultIsolation:
    """A failing listener never blocks the others or the publisher."""

    def test_second_listener_receives_after_first_raises(
        self, bus: EventBus, caplog: pytest.LogCaptureFixture
    ) -> None:
        def failing(*_: Any) -> None:
            raise RuntimeError("listener failed")

        survivor = Recorder()
        bus.subscribe("bad", "T", failing)
        bus.subscribe("good", "T", survivor)

        with caplog.at_level(logging.ERROR):
            bus.publish("T", "payload")

        assert len(survivor.calls) == 1
        assert "listener failed" in caplog.text
        assert "bad" in caplog.text


class TestEventBusReentrancy:
    """Listeners mutating the bus during delivery."""

    def test_unsubscribed_listener_still_gets_in_flight_event(self, bus: EventBus) -> None:
        second = Recorder()

        def remover(*_: Any) -> None:
            bus.unsubscribe("second")

        bus.subscribe("first", "T", remover)
        bus.subscribe("second", "T", second)

        bus.publish("T", 1)
        bus.publish("T", 2)

        assert [c[2] for c in second.calls] == [1]

    def test_subscription_added_during_delivery_waits_for_next_publish(
        self, bus: EventBus
    ) -> None:
        late = Recorder()

        def adder(*_: Any) -> None:
            bus.subscribe("late", "T", late)

        bus.subscribe("adder", "T", adder)

        bus.publish("T", 1)
        assert late.calls == []

        bus.publish("T", 2)
        assert [c[2] for c in late.calls] == [2]

    def test_listener_can_publish(self, bus: EventBus) -> None:
        pong = Recorder()

        def ping(sid: str, topic: str, data: Any, *_: Any) -> None:
            bus.publish("PONG", data + 1)

        bus.subscribe("ping", "PING", ping)
        bus.subscribe("pong", "PONG", pong)

        bus.publish("PING", 1)

        assert [c[2] for c in pong.calls] == [2]
        assert [e.topic for e in bus.get_history()] == ["PING", "PONG"]

    def test_self_unsubscribe(self, bus: EventBus) -> None:
        calls: list[int] = []

        def once(sid: str, topic: str, data: Any, *_: Any) -> None:
            calls.append(data)
            bus.unsubscribe(sid)

        bus.subscribe("once", "T", once)
        bus.publish("T", 1)
        bus.publish("T", 2)

        assert calls == [1]


class TestEventBusHistory:
    """History through the bus API."""

    def test_history_bound(self) -> None:
        bus = EventBus(max_history_size=10)
        for i in range(15):
            bus.publish("T", i)

        history = bus.get_history()
        assert len(history) == 10
        assert [e.data for e in history] == list(range(5, 15))

    def test_history_filter_is_exact(self, bus: EventBus) -> None:
        bus.publish("A.B", 1)
        bus.publish("A.C", 2)
        bus.publish("A.B", 3)

        assert [e.data for e in bus.get_history("A.B")] == [1, 3]
        assert bus.get_history("A.*") == []

    def test_clear_history(self, bus: EventBus) -> None:
        bus.publish("T", 1)
        bus.clear_history()
        assert bus.get_history() == []

    def test_new_subscriber_does_not_get_replay(self, bus: EventBus) -> None:
        bus.publish("T", 1)
        listener = Recorder()
        bus.subscribe("s", "T", listener)
        assert listener.calls == []


class TestEventBusDestroy:
    """destroy() tears down subscriptions and history."""

    def test_destroy(self, caplog: pytest.LogCaptureFixture) -> None:
        bus = EventBus()
        listener = Recorder()
        bus.subscribe("s", "T", listener)
        bus.publish("T", 1)

        bus.destroy()

        assert bus.closed is True
        assert bus.list_active_subscription_ids() == []
        assert bus.get_history() == []

        with caplog.at_level(logging.WARNING):
            bus.publish("T", 2)
            bus.subscribe("s2", "T", listener)
        assert len(listener.calls) == 1
        assert bus.get_history() == []
        assert bus.list_active_subscription_ids() == []
        assert "destroyed" in caplog.text


class TestEventBusConstruction:
    def test_from_settings(self) -> None:
        bus = EventBus.from_settings({"event_bus": {"debug": True, "max_history_size": 3}})
        for i in range(5):
            bus.publish("T", i)
        assert [e.data for e in bus.get_history()] == [2, 3, 4]

    def test_invalid_history_size(self) -> None:
        with pytest.raises(ValueError):
            EventBus(max_history_size=0)

    def test_debug_mode_logs_deliveries(self, caplog: pytest.LogCaptureFixture) -> None:
        bus = EventBus(debug=True)
        bus.subscribe("s", "T", Recorder())
        with caplog.at_level(logging.DEBUG, logger="busflow.events.bus"):
            bus.publish("T", 1)
        assert "sent T to 1/1 subscribers" in caplog.text

    def test_default_bus_is_shared_until_reset(self) -> None:
        first = get_default_bus()
        assert get_default_bus() is first

        reset_default_bus()

        assert first.closed is True
        assert get_default_bus() is not first
