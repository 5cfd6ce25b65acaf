# tests/test_broadcaster.py
"""Unit tests for topic fan-out and slow-subscriber handling."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import pytest
from crowdwatch.services.broadcaster import Broadcaster, is_valid_topic


def drain(subscriber):
    messages = []
    while not subscriber.queue.empty():
        messages.append(subscriber.queue.get_nowait())
    return messages


class TestTopics:
    @pytest.mark.parametrize("topic", ["areas", "scans", "alerts", "area/1", "area/12345"])
    def test_valid(self, topic):
        assert is_valid_topic(topic)

    @pytest.mark.parametrize("topic", ["", "area/", "area/x", "events", "alerts/1", " areas"])
    def test_invalid(self, topic):
        assert not is_valid_topic(topic)


class TestBroadcaster:
    @pytest.mark.asyncio
    async def test_publish_reaches_only_topic_subscribers(self):
        broadcaster = Broadcaster(queue_size=10)
        a = broadcaster.register("a")
        b = broadcaster.register("b")
        broadcaster.subscribe(a, "scans")
        broadcaster.subscribe(b, "alerts")

        delivered = broadcaster.publish("scans", {"areaId": 1})

        assert delivered == 1
        assert drain(a) == [{"topic": "scans", "payload": {"areaId": 1}}]
        assert drain(b) == []

    @pytest.mark.asyncio
    async def test_area_update_goes_to_area_and_areas_topics(self):
        broadcaster = Broadcaster(queue_size=10)
        one = broadcaster.register()
        other = broadcaster.register()
        everything = broadcaster.register()
        broadcaster.subscribe(one, "area/1")
        broadcaster.subscribe(other, "area/2")
        broadcaster.subscribe(everything, "areas")

        broadcaster.publish_area_update({"id": 1, "currentCount": 4})

        assert [m["topic"] for m in drain(one)] == ["area/1"]
        assert drain(other) == []
        assert [m["topic"] for m in drain(everything)] == ["areas"]

    @pytest.mark.asyncio
    async def test_scan_event_payload(self):
        broadcaster = Broadcaster(queue_size=10)
        sub = broadcaster.register()
        broadcaster.subscribe(sub, "scans")
        broadcaster.publish_scan_event(3, "EXIT", 0)
        assert drain(sub)[0]["payload"] == {"areaId": 3, "kind": "EXIT", "newCount": 0}

    @pytest.mark.asyncio
    async def test_publish_preserves_order(self):
        broadcaster = Broadcaster(queue_size=10)
        sub = broadcaster.register()
        broadcaster.subscribe(sub, "scans")
        for i in range(5):
            broadcaster.publish("scans", i)
        assert [m["payload"] for m in drain(sub)] == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        broadcaster = Broadcaster(queue_size=10)
        sub = broadcaster.register()
        broadcaster.subscribe(sub, "alerts")
        broadcaster.unsubscribe(sub, "alerts")
        assert broadcaster.publish("alerts", {}) == 0

    def test_subscribe_rejects_unknown_topic(self):
        broadcaster = Broadcaster(queue_size=10)
        sub = broadcaster.register()
        with pytest.raises(ValueError):
            broadcaster.subscribe(sub, "everything")

    @pytest.mark.asyncio
    async def test_slow_subscriber_is_dropped_without_blocking_others(self):
        broadcaster = Broadcaster(queue_size=2)
        slow = broadcaster.register("slow")
        fast = broadcaster.register("fast")
        broadcaster.subscribe(slow, "scans")
        broadcaster.subscribe(fast, "scans")

        broadcaster.publish("scans", 1)
        broadcaster.publish("scans", 2)
        drain(fast)
        delivered = broadcaster.publish("scans", 3)

        assert delivered == 1
        assert slow.dropped
        assert broadcaster.subscriber_count == 1
        assert drain(fast) == [{"topic": "scans", "payload": 3}]

    @pytest.mark.asyncio
    async def test_pump_forwards_until_stopped(self):
        broadcaster = Broadcaster(queue_size=10)
        sub = broadcaster.register()
        broadcaster.subscribe(sub, "alerts")
        sent = []

        async def send(message):
            sent.append(message)

        task = asyncio.create_task(sub.pump(send))
        broadcaster.publish("alerts", {"id": 1})
        broadcaster.publish("alerts", {"id": 2})
        for _ in range(3):
            await asyncio.sleep(0)
        sub.stop()
        await asyncio.wait_for(task, timeout=1)

        assert [m["payload"]["id"] for m in sent] == [1, 2]

    @pytest.mark.asyncio
    async def test_dropped_subscriber_pump_ends(self):
        broadcaster = Broadcaster(queue_size=1)
        sub = broadcaster.register()
        broadcaster.subscribe(sub, "scans")
        broadcaster.publish("scans", 1)
        broadcaster.publish("scans", 2)

        async def send(message):
            raise AssertionError("queued messages of a dropped subscriber must be discarded")

        await asyncio.wait_for(sub.pump(send), timeout=1)
        assert sub.dropped

    @pytest.mark.asyncio
    async def test_close_all_ends_every_pump(self):
        broadcaster = Broadcaster(queue_size=10)
        subs = [broadcaster.register() for _ in range(3)]

        async def send(message):
            pass

        tasks = [asyncio.create_task(s.pump(send)) for s in subs]
        assert broadcaster.close_all() == 3
        await asyncio.wait_for(asyncio.gather(*tasks), timeout=1)
        assert broadcaster.subscriber_count == 0
        assert not any(s.dropped for s in subs)
