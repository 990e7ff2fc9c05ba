"""
Order chat — append-only messages between a customer and the admin.

Only the order's owner and the admin may read or post. Every stored
message is published as ``new-message`` on the order's topic; delivery
is at-least-once, so subscribers merge by id (``ChatTimeline``).
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Forbidden, NotFound, ValidationError
from app.core.security import Actor
from app.models.message import Message
from app.models.order import Order
from app.services.realtime_service import EVENT_NEW_MESSAGE, RealtimePublisher, order_topic

logger = logging.getLogger(__name__)

# Posted once per order by the customer's "I already paid" action
PAYMENT_CONFIRMED_TEXT = "Customer indicated that the payment was made."


def message_to_dict(message: Message, sender=None) -> dict:
    """Wire/realtime shape of a message. *sender* defaults to ``message.sender``."""
    sender = sender if sender is not None else message.sender
    return {
        "id": message.id,
        "orderId": message.order_id,
        "senderId": message.sender_id,
        "content": message.content,
        "imageUrl": message.image_url,
        "createdAt": message.created_at,
        "sender": {
            "fullName": getattr(sender, "full_name", None),
            "email": getattr(sender, "email", None),
        },
    }


class ChatService:
    """Posts and lists order messages."""

    def __init__(self, db: AsyncSession, redis):
        self.db = db
        self.publisher = RealtimePublisher(redis)

    async def _authorized_order(self, order_id, actor: Actor) -> Order:
        result = await self.db.execute(select(Order).where(Order.id == order_id))
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFound("Order not found")
        if not actor.can_access(order.user_id):
            raise Forbidden("Not allowed to access this order")
        return order

    async def post_message(
        self,
        order_id,
        actor: Actor,
        content: str | None = None,
        image_url: str | None = None,
    ) -> dict:
        """Store a message and publish it on the order's topic."""
        content = (content or "").strip() or None
        image_url = (image_url or "").strip() or None
        if content is None and image_url is None:
            raise ValidationError("Message must have content or an image", missing=["content"])

        order = await self._authorized_order(order_id, actor)

        message = Message(
            order_id=order.id,
            sender_id=actor.user_id,
            content=content,
            image_url=image_url,
        )
        self.db.add(message)
        await self.db.flush()
        await self.db.commit()

        payload = message_to_dict(message, sender=actor.user)
        await self.publisher.publish(order_topic(order.id), EVENT_NEW_MESSAGE, payload)
        logger.info("Message %s posted on order %s by %s", message.id, order.id, actor.user_id)
        return payload

    async def confirm_payment(self, order_id, actor: Actor) -> dict:
        """Post the payment-confirmed sentinel at most once. Owner only."""
        result = await self.db.execute(select(Order).where(Order.id == order_id))
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFound("Order not found")
        if order.user_id != actor.user_id:
            raise Forbidden("Only the order owner can confirm payment")

        result = await self.db.execute(
            select(Message.id).where(
                Message.order_id == order.id,
                Message.content == PAYMENT_CONFIRMED_TEXT,
            ).limit(1)
        )
        if result.scalar_one_or_none() is not None:
            return {"success": True, "already_confirmed": True}

        message = Message(
            order_id=order.id,
            sender_id=actor.user_id,
            content=PAYMENT_CONFIRMED_TEXT,
        )
        self.db.add(message)
        await self.db.flush()
        await self.db.commit()

        await self.publisher.publish(
            order_topic(order.id),
            EVENT_NEW_MESSAGE,
            message_to_dict(message, sender=actor.user),
        )
        logger.info("Payment confirmed by customer on order %s", order.id)
        return {"success": True, "already_confirmed": False}

    async def list_messages(self, order_id, actor: Actor) -> tuple[Order, list[Message]]:
        """The order and its messages, oldest first."""
        order = await self._authorized_order(order_id, actor)
        result = await self.db.execute(
            select(Message)
            .where(Message.order_id == order.id)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return order, list(result.scalars().all())
