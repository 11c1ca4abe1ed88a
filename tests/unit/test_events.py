from app.services.events import BalanceChanged, EventBus, OrderStatusChanged, event_payload


def test_channels():
    assert OrderStatusChanged("ABC123", "pending", "assigned").channel == "order:ABC123"
    evt = BalanceChanged("s1", "seller", 100, "tx1", "charge", 100)
    assert evt.channel == "account:seller:s1"


def test_payload_is_json_friendly():
    data = event_payload(OrderStatusChanged("ABC123", None, "pending", actor_id="s1"))
    assert data["order_id"] == "ABC123"
    assert data["from_status"] is None
    assert isinstance(data["occurred_at"], str)


async def test_publish_reaches_sync_and_async_handlers():
    bus = EventBus()
    seen = []

    async def async_handler(event):
        seen.append(("async", event.to_status))

    bus.subscribe(lambda e: seen.append(("sync", e.to_status)))
    bus.subscribe(async_handler)
    await bus.publish(OrderStatusChanged("ABC123", "assigned", "product_preparing"))
    assert seen == [("sync", "product_preparing"), ("async", "product_preparing")]


async def test_failing_handler_does_not_block_others():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("listener down")

    bus.subscribe(broken)
    bus.subscribe(seen.append)
    events = [OrderStatusChanged("A", None, "pending"), OrderStatusChanged("A", "pending", "assigned")]
    await bus.publish_all(events)
    assert seen == events


async def test_unsubscribe():
    bus = EventBus()
    seen = []
    bus.subscribe(seen.append)
    bus.subscribe(seen.append)
    bus.unsubscribe(seen.append)
    await bus.publish(OrderStatusChanged("A", None, "pending"))
    assert seen == []
