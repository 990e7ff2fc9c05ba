"""
Pydantic schemas for order chat.
"""

from datetime import datetime
from uuid import UUID

from app.schemas.common import CamelModel
from app.schemas.order import OrderResponse


class MessageCreateRequest(CamelModel):
    content: str | None = None
    image_url: str | None = None


class SenderInfo(CamelModel):
    full_name: str | None = None
    email: str | None = None


class MessageResponse(CamelModel):
    id: UUID
    order_id: UUID
    sender_id: UUID
    content: str | None
    image_url: str | None
    created_at: datetime
    sender: SenderInfo | None = None


class MessageListResponse(CamelModel):
    order: OrderResponse
    messages: list[MessageResponse]


class ConfirmPaymentResponse(CamelModel):
    success: bool
    already_confirmed: bool
