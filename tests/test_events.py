"""Tests for the publish/subscribe event bus."""

from forestriclib.events import EventBus


class TestEventBus:
    def test_emit_reaches_subscribers(self):
        bus = EventBus()
        seen = []
        bus.subscribe("crop.changed", lambda **kw: seen.append(kw))
        bus.emit("crop.changed", start=1.0, end=2.0)
        assert seen == [{"start": 1.0, "end": 2.0}]

    def test_handlers_called_in_subscription_order(self):
        bus = EventBus()
        order = []
        bus.subscribe("x", lambda: order.append(1))
        bus.subscribe("x", lambda: order.append(2))
        bus.emit("x")
        assert order == [1, 2]

    def test_unsubscribe(self):
        bus = EventBus()
        seen = []

        def handler(**kw):
            seen.append(kw)

        bus.subscribe("x", handler)
        bus.unsubscribe("x", handler)
        bus.emit("x", a=1)
        assert seen == []

    def test_unsubscribe_unknown_handler(self):
        EventBus().unsubscribe("nothing", print)

    def test_emit_without_subscribers(self):
        EventBus().emit("nobody.listens", value=1)

    def test_handler_may_unsubscribe_during_emit(self):
        bus = EventBus()
        calls = []

        def once():
            calls.append(1)
            bus.unsubscribe("x", once)

        bus.subscribe("x", once)
        bus.emit("x")
        bus.emit("x")
        assert calls == [1]

    def test_subscribe_returns_detach(self):
        bus = EventBus()
        seen = []
        detach = bus.subscribe("x", lambda: seen.append(1))
        detach()
        bus.emit("x")
        assert seen == []
        assert not bus.has_subscribers("x")

    def test_subscribed_context(self):
        bus = EventBus()
        seen = []
        with bus.subscribed("export.block", lambda **kw: seen.append(kw["index"])):
            assert bus.has_subscribers("export.block")
            bus.emit("export.block", index=1)
        bus.emit("export.block", index=2)
        assert seen == [1]
