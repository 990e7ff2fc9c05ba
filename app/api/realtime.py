"""
WebSocket relay for an order's chat.

    ws /api/v1/realtime/orders/{order_id}?token=<access_token>

On connect the client receives ``{"event": "history", "data": {"messages": [...]}}``
followed by every live ``new-message`` event from the ``order-<id>`` topic.
The relay subscribes before loading history and merges through a
ChatTimeline, so a message that lands in both is sent once.

The socket is read while the relay runs; when the client leaves, the
relay is cancelled and the topic subscription released, even if the
topic never carried a message.
"""

import asyncio
import logging
from collections.abc import AsyncIterable, Awaitable, Callable
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from app.api.deps import find_user
from app.core.errors import ExchangeError, NotFound
from app.core.security import Actor, verify_token
from app.database import async_session
from app.redis_client import get_redis
from app.services.chat_service import ChatService, message_to_dict
from app.services.chat_timeline import ChatTimeline
from app.services.realtime_service import (
    EVENT_NEW_MESSAGE,
    decode_event,
    encode_event,
    order_topic,
)

logger = logging.getLogger(__name__)

router = APIRouter()

EVENT_HISTORY = "history"

# Application close codes (4000 + HTTP status)
CLOSE_CODES = {401: 4401, 403: 4403, 404: 4404}


async def relay_events(
    entries: AsyncIterable[dict],
    send: Callable[[str], Awaitable[None]],
    timeline: ChatTimeline,
) -> int:
    """
    Forward new chat messages from a pub/sub stream to *send*.

    Skips subscribe confirmations, undecodable payloads, other events
    and ids the timeline has already seen. Returns how many were sent.
    """
    sent = 0
    async for entry in entries:
        if entry.get("type") != "message":
            continue
        try:
            event, data = decode_event(entry["data"])
        except (ValueError, KeyError, TypeError):
            logger.warning("Dropping undecodable realtime payload")
            continue
        if event != EVENT_NEW_MESSAGE or "id" not in data:
            continue
        if not timeline.apply(data):
            continue
        await send(encode_event(EVENT_NEW_MESSAGE, data))
        sent += 1
    return sent


async def wait_for_disconnect(websocket: WebSocket) -> None:
    """Read client frames until the peer goes away. Inbound text is ignored."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


async def _load_history(order_id: UUID, token: str) -> list[dict]:
    identity = verify_token(token)
    async with async_session() as db:
        user = await find_user(db, identity.subject)
        if user is None:
            raise NotFound("User not synced")
        actor = Actor(user=user, is_admin=identity.is_admin)
        _, messages = await ChatService(db, await get_redis()).list_messages(order_id, actor)
        return [message_to_dict(m) for m in messages]


@router.websocket("/orders/{order_id}")
async def order_chat_socket(
    websocket: WebSocket,
    order_id: UUID,
    token: str = Query(...),
):
    redis = await get_redis()
    pubsub = redis.pubsub()
    await pubsub.subscribe(order_topic(order_id))
    try:
        try:
            history = await _load_history(order_id, token)
        except ExchangeError as exc:
            await websocket.close(code=CLOSE_CODES.get(exc.status_code, 1011), reason=exc.message)
            return

        await websocket.accept()
        timeline = ChatTimeline(history)
        await websocket.send_text(encode_event(EVENT_HISTORY, {"messages": timeline.messages}))

        # An idle topic never wakes the relay, so a disconnect is noticed
        # by reading the socket alongside it.
        relay = asyncio.create_task(relay_events(pubsub.listen(), websocket.send_text, timeline))
        watcher = asyncio.create_task(wait_for_disconnect(websocket))
        try:
            done, _ = await asyncio.wait({relay, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (relay, watcher):
                task.cancel()
            await asyncio.gather(relay, watcher, return_exceptions=True)
        for task in done:
            task.result()
        logger.debug(
            "Chat socket for order %s ended (%s)",
            order_id, "client left" if watcher in done else "stream closed",
        )
    except WebSocketDisconnect:
        logger.debug("Chat socket for order %s closed by client", order_id)
    finally:
        await pubsub.unsubscribe(order_topic(order_id))
        await pubsub.aclose()
