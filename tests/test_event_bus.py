from portal_verdict.tools.event_bus import InMemoryEventBus


async def test_delivers_in_subscription_order():
    bus = InMemoryEventBus()
    seen = []
    bus.subscribe(lambda v: seen.append(("a", v)))
    bus.subscribe(lambda v: seen.append(("b", v)))
    await bus.publish(1)
    assert seen == [("a", 1), ("b", 1)]


async def test_awaits_async_listeners():
    bus = InMemoryEventBus()
    seen = []

    async def listener(value):
        seen.append(value)

    bus.subscribe(listener)
    await bus.publish("x")
    assert seen == ["x"]


async def test_isolates_failures_and_unsubscribes():
    bus = InMemoryEventBus()
    seen = []

    def broken(value):
        raise RuntimeError("nope")

    unsubscribe = bus.subscribe(broken)
    bus.subscribe(seen.append)
    await bus.publish(1)
    unsubscribe()
    unsubscribe()
    await bus.publish(2)
    assert seen == [1, 2]
