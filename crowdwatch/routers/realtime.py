# crowdwatch/routers/realtime.py
"""
Real-time channel: WebSocket at /ws.

Client → server:  {"action": "subscribe" | "unsubscribe", "topic": "area/12" | "areas" | "scans" | "alerts"}
Server → client:  {"type": "subscribed" | "unsubscribed", "topic": ...}
                  {"type": "error", "error": ...}
                  {"topic": ..., "payload": {...}}      ← published messages
Initial topics can also be passed as /ws?topics=areas,alerts
"""

import asyncio

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from crowdwatch.dependencies import get_broadcaster
from crowdwatch.services.broadcaster import SLOW_SUBSCRIBER_CLOSE_CODE, Broadcaster, Subscriber, is_valid_topic
from crowdwatch.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _handle_command(broadcaster: Broadcaster, subscriber: Subscriber, command) -> dict:
    if not isinstance(command, dict):
        return {"type": "error", "error": "Expected a JSON object"}
    action = command.get("action")
    topic = command.get("topic")
    if action not in ("subscribe", "unsubscribe"):
        return {"type": "error", "error": f"Unknown action: {action}"}
    if not isinstance(topic, str) or not is_valid_topic(topic):
        return {"type": "error", "error": f"Unknown topic: {topic}"}

    if action == "subscribe":
        broadcaster.subscribe(subscriber, topic)
        return {"type": "subscribed", "topic": topic}
    broadcaster.unsubscribe(subscriber, topic)
    return {"type": "unsubscribed", "topic": topic}


async def _receive_commands(websocket: WebSocket, broadcaster: Broadcaster, subscriber: Subscriber):
    while True:
        try:
            command = await websocket.receive_json()
        except (ValueError, KeyError):
            reply = {"type": "error", "error": "Invalid JSON"}
        else:
            reply = _handle_command(broadcaster, subscriber, command)
        # Replies share the outbound queue so they stay ordered with published messages
        if not subscriber.offer(reply):
            broadcaster.drop(subscriber)
            return


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket, broadcaster: Broadcaster = Depends(get_broadcaster)):
    await websocket.accept()
    client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"
    subscriber = broadcaster.register(label=client)

    for topic in filter(None, (t.strip() for t in websocket.query_params.get("topics", "").split(","))):
        if is_valid_topic(topic):
            broadcaster.subscribe(subscriber, topic)
            subscriber.offer({"type": "subscribed", "topic": topic})
        else:
            subscriber.offer({"type": "error", "error": f"Unknown topic: {topic}"})

    sender = asyncio.create_task(subscriber.pump(websocket.send_json))
    receiver = asyncio.create_task(_receive_commands(websocket, broadcaster, subscriber))
    try:
        done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning(f"[WS] connection {client} ended with error: {exc}")
    finally:
        broadcaster.unregister(subscriber)

    if subscriber.dropped:
        try:
            await websocket.close(code=SLOW_SUBSCRIBER_CLOSE_CODE)
        except RuntimeError:
            pass   # client already gone
