"""
Payment channel registry — admin CRUD and the public listing.

``key`` is upper-cased and unique; it is what quotes and orders refer
to. Archiving a channel hides it everywhere without deleting history.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, NotFound, ValidationError
from app.models.order import Side
from app.models.payment_channel import PaymentChannel

logger = logging.getLogger(__name__)

PERCENT_FIELDS = ("commission_buy_percent", "commission_sell_percent", "provider_fee_percent")
TEXT_FIELDS = ("label", "status_text_buy", "status_text_sell")


def public_view(channel: PaymentChannel, side: Side) -> dict:
    """What a customer sees for *channel* on *side*."""
    available = channel.is_offerable(side)
    status_text = channel.status_text_for(side)
    return {
        "id": channel.id,
        "key": channel.key,
        "label": channel.label,
        "commission_percent": channel.commission_for(side),
        "available": available,
        "display_status": "Available" if available else (status_text or "Unavailable"),
    }


def _check_percent(name: str, value) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a number")
    if not number.is_finite() or number < 0 or number > 100:
        raise ValidationError(f"{name} must be between 0 and 100")
    return number


class ChannelService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_public(self, side: Side) -> list[dict]:
        result = await self.db.execute(
            select(PaymentChannel)
            .where(PaymentChannel.visible.is_(True), PaymentChannel.archived_at.is_(None))
            .order_by(PaymentChannel.sort_order.asc(), PaymentChannel.label.asc())
        )
        return [public_view(c, side) for c in result.scalars().all()]

    async def list_all(self) -> list[PaymentChannel]:
        result = await self.db.execute(
            select(PaymentChannel).order_by(PaymentChannel.sort_order.asc(), PaymentChannel.label.asc())
        )
        return list(result.scalars().all())

    async def get(self, channel_id) -> PaymentChannel:
        result = await self.db.execute(select(PaymentChannel).where(PaymentChannel.id == channel_id))
        channel = result.scalar_one_or_none()
        if channel is None:
            raise NotFound("Payment channel not found")
        return channel

    async def create(self, **fields) -> PaymentChannel:
        key = str(fields.pop("key", "") or "").strip().upper()
        label = str(fields.get("label") or "").strip()
        if len(key) < 2 or len(label) < 2:
            raise ValidationError("key and label are required", missing=["key", "label"])

        existing = await self.db.execute(select(PaymentChannel.id).where(PaymentChannel.key == key))
        if existing.scalar_one_or_none() is not None:
            raise Conflict(f"Channel key {key} already exists")

        values = {k: v for k, v in fields.items() if v is not None}
        for name in PERCENT_FIELDS:
            if name in values:
                values[name] = _check_percent(name, values[name])
        values["label"] = label

        channel = PaymentChannel(key=key, **values)
        self.db.add(channel)
        await self.db.flush()
        logger.info("Payment channel %s created", key)
        return channel

    async def update(self, channel_id, **fields) -> PaymentChannel:
        """Partial update. ``archived`` toggles ``archived_at``."""
        channel = await self.get(channel_id)

        archived = fields.pop("archived", None)
        if archived is True and channel.archived_at is None:
            channel.archived_at = datetime.now(timezone.utc)
        elif archived is False:
            channel.archived_at = None

        for name, value in fields.items():
            if value is None and name not in ("status_text_buy", "status_text_sell"):
                continue
            if name in PERCENT_FIELDS:
                value = _check_percent(name, value)
            elif name in TEXT_FIELDS and isinstance(value, str):
                value = value.strip() or None
                if name == "label" and value is None:
                    raise ValidationError("label cannot be empty", missing=["label"])
            setattr(channel, name, value)

        channel.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        logger.info("Payment channel %s updated", channel.key)
        return channel

    async def delete(self, channel_id) -> None:
        channel = await self.get(channel_id)
        await self.db.delete(channel)
        await self.db.flush()
        logger.info("Payment channel %s deleted", channel.key)
