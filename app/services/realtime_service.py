"""
Realtime fan-out — fire-and-forget publish over Redis pub/sub.

Every event is published as a JSON envelope ``{"event": ..., "data": ...}``
on a topic (Redis channel). Delivery is at-least-once from the
subscriber's point of view and unordered across topics, so consumers
merge by id (see ``app.services.chat_timeline``).

``publish`` never raises: a failed publish is logged and the triggering
operation carries on.
"""

import json
import logging
import uuid
from datetime import datetime
from decimal import Decimal

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Topics and events
# ---------------------------------------------------------------------------

ADMIN_TOPIC = "admin-events"
RATES_TOPIC = "exchange-rates"
CONFIG_TOPIC = "app-config"

EVENT_NEW_MESSAGE = "new-message"
EVENT_ORDER_CREATED = "order-created"
EVENT_ORDER_UPDATED = "order-updated"
EVENT_VERIFICATION_SUBMITTED = "verification-submitted"
EVENT_VERIFICATION_UPDATED = "verification-updated"
EVENT_VERIFICATION_STATUS = "verification-status"
EVENT_INTAKE_SUBMITTED = "intake-submitted"
EVENT_TRUSTED_STATUS = "trusted-status"
EVENT_RATES_UPDATED = "rates-updated"
EVENT_CONFIG_UPDATED = "config-updated"


def order_topic(order_id) -> str:
    """Per-order chat topic."""
    return f"order-{order_id}"


def user_topic(user_id) -> str:
    """Private topic for one customer."""
    return f"user-{user_id}"


def _default(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (uuid.UUID,)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value"):  # enums
        return value.value
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def encode_event(event: str, payload: dict) -> str:
    return json.dumps({"event": event, "data": payload}, default=_default)


def decode_event(raw: str | bytes) -> tuple[str, dict]:
    envelope = json.loads(raw)
    return envelope["event"], envelope.get("data") or {}


# ---------------------------------------------------------------------------
# Publisher
# ---------------------------------------------------------------------------


class RealtimePublisher:
    """Thin wrapper over Redis PUBLISH."""

    def __init__(self, redis):
        self.redis = redis

    async def publish(self, topic: str, event: str, payload: dict) -> bool:
        """Publish *payload* as *event* on *topic*. Returns False on failure."""
        try:
            message = encode_event(event, payload)
            await self.redis.publish(topic, message)
        except Exception:
            logger.warning("Realtime publish failed: %s/%s", topic, event, exc_info=True)
            return False
        return True
