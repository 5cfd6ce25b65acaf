# crowdwatch/services/broadcaster.py
"""
Real-time fan-out to WebSocket subscribers.

Topics:
  area/{id}  — Area snapshot after every change
  areas      — same payload, all areas
  scans      — {areaId, kind, newCount}
  alerts     — full alert payload when an alert opens

Delivery is best-effort and at-most-once. publish() never awaits: each subscriber has a
bounded outbound queue, and a subscriber whose queue is full is dropped and disconnected.
Must be called from the event loop thread that owns the subscribers.
"""

import asyncio
import re
from typing import Awaitable, Callable, Set

from crowdwatch.utils.logger import get_logger

logger = get_logger(__name__)

TOPIC_PATTERN = re.compile(r"^(areas|scans|alerts|area/\d+)$")

# Close code sent to subscribers that could not keep up ("try again later")
SLOW_SUBSCRIBER_CLOSE_CODE = 1013

_STOP = object()


def is_valid_topic(topic: str) -> bool:
    return bool(topic) and TOPIC_PATTERN.match(topic) is not None


class Subscriber:
    def __init__(self, queue_size: int, label: str = ""):
        self.topics: Set[str] = set()
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.label = label
        self.dropped = False

    def offer(self, message: dict) -> bool:
        try:
            self.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            return False

    def stop(self):
        # Make room for the stop marker; pending messages are discarded
        while not self.queue.empty():
            self.queue.get_nowait()
        self.queue.put_nowait(_STOP)

    async def pump(self, send: Callable[[dict], Awaitable[None]]):
        """Forward queued messages to `send` until stopped."""
        while True:
            message = await self.queue.get()
            if message is _STOP:
                return
            await send(message)


class Broadcaster:
    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: Set[Subscriber] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def register(self, label: str = "") -> Subscriber:
        subscriber = Subscriber(self.queue_size, label)
        self._subscribers.add(subscriber)
        logger.info(f"[WS] subscriber connected {label} ({len(self._subscribers)} total)")
        return subscriber

    def unregister(self, subscriber: Subscriber):
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            logger.info(f"[WS] subscriber disconnected {subscriber.label} ({len(self._subscribers)} total)")

    def subscribe(self, subscriber: Subscriber, topic: str):
        if not is_valid_topic(topic):
            raise ValueError(f"Unknown topic: {topic}")
        subscriber.topics.add(topic)

    def unsubscribe(self, subscriber: Subscriber, topic: str):
        subscriber.topics.discard(topic)

    def close_all(self) -> int:
        """Stop every subscriber's pump (shutdown). Returns how many were connected."""
        subscribers = list(self._subscribers)
        self._subscribers.clear()
        for subscriber in subscribers:
            subscriber.stop()
        return len(subscribers)

    def drop(self, subscriber: Subscriber):
        """Disconnect a subscriber whose queue is full. Its connection closes with 1013."""
        logger.warning(f"[WS] dropping slow subscriber {subscriber.label} (queue full)")
        subscriber.dropped = True
        self.unregister(subscriber)
        subscriber.stop()

    def publish(self, topic: str, payload) -> int:
        """Queue `payload` for every subscriber of `topic`. Returns how many accepted it."""
        message = {"topic": topic, "payload": payload}
        delivered = 0
        for subscriber in list(self._subscribers):
            if topic not in subscriber.topics:
                continue
            if subscriber.offer(message):
                delivered += 1
            else:
                self.drop(subscriber)
        return delivered

    # ── Typed helpers used by the scan path ─────────────────────────────────

    def publish_area_update(self, area: dict):
        self.publish(f"area/{area['id']}", area)
        self.publish("areas", area)

    def publish_scan_event(self, area_id: int, kind: str, new_count: int):
        self.publish("scans", {"areaId": area_id, "kind": kind, "newCount": new_count})

    def publish_alert(self, alert: dict):
        self.publish("alerts", alert)
