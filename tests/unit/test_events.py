"""Unit tests for the in-process event bus."""

from knowledge_engine.events import Event, InProcessEventBus


class TestInProcessEventBus:
    def test_publish_to_subscribers_in_order(self):
        bus = InProcessEventBus()
        received = []
        bus.subscribe("topic", lambda e: received.append(("first", e.data["n"])))
        bus.subscribe("topic", lambda e: received.append(("second", e.data["n"])))
        bus.subscribe("other", lambda e: received.append(("other", e.data["n"])))

        bus.publish(Event(type="topic", source="test", data={"n": 1}))

        assert received == [("first", 1), ("second", 1)]

    def test_failing_handler_is_deactivated(self):
        bus = InProcessEventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe("topic", broken)
        bus.subscribe("topic", lambda e: received.append(e.id))

        first = bus.publish_simple("topic", "test")
        second = bus.publish_simple("topic", "test")

        assert received == [first.id, second.id]
        assert bus.get_subscription_count("topic") == 1

    def test_unsubscribe(self):
        bus = InProcessEventBus()
        received = []
        subscription = bus.subscribe("topic", received.append)

        assert bus.unsubscribe(subscription.id) is True
        assert bus.unsubscribe(subscription.id) is False

        bus.publish_simple("topic", "test")
        assert received == []
        assert bus.get_subscription_count("topic") == 0

    def test_history_is_bounded(self):
        bus = InProcessEventBus(max_history=3)
        for i in range(5):
            bus.publish_simple("a" if i % 2 else "b", "test", {"i": i})

        history = bus.get_event_history()

        assert [e.data["i"] for e in history] == [2, 3, 4]
        assert [e.data["i"] for e in bus.get_event_history("a")] == [3]

        bus.clear_history()
        assert bus.get_event_history() == []

    def test_create_event_defaults(self):
        event = InProcessEventBus().create_event("topic", "src")

        assert event.type == "topic"
        assert event.source == "src"
        assert event.data == {}
        assert event.context == {}
        assert event.priority == "medium"
        assert event.id.startswith("event_")
        assert event.timestamp > 0
