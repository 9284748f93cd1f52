from rogue_resident.events import NODE_SELECTED, Event, EventBus


def test_failing_subscriber_does_not_block_others():
    bus = EventBus()
    got = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe("x", broken)
    bus.subscribe("x", got.append)
    event = bus.publish("x", {"n": 1})
    assert got == [event]


def test_unsubscribe_handle_removes_only_its_callback():
    bus = EventBus()
    first, second = [], []
    stop_first = bus.subscribe(NODE_SELECTED, first.append)
    bus.subscribe(NODE_SELECTED, second.append)
    # The same callable twice is two subscriptions
    stop_dup = bus.subscribe(NODE_SELECTED, second.append)

    bus.publish(NODE_SELECTED, {"node_id": "a"})
    stop_first()
    stop_dup()
    stop_dup()
    bus.publish(NODE_SELECTED, {"node_id": "b"})

    assert [e.payload["node_id"] for e in first] == ["a"]
    assert [e.payload["node_id"] for e in second] == ["a", "a", "b"]
    assert bus.subscriber_count(NODE_SELECTED) == 1


def test_events_are_numbered_in_publish_order():
    bus = EventBus()
    seen = []
    bus.subscribe("a", seen.append)
    bus.subscribe("b", seen.append)
    bus.publish("a", {})
    unheard = bus.publish("c", {})
    bus.publish("b", {})
    assert [e.seq for e in seen] == [1, 3]
    assert unheard == Event(name="c", payload={}, seq=2)


def test_publish_without_subscribers_returns_event():
    event = EventBus().publish("nobody", {"k": 1})
    assert event.name == "nobody" and event.payload == {"k": 1} and event.seq == 1
