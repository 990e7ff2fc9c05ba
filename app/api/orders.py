"""
Order endpoints — create, list, count, read, chat and payment confirmation.

Create flow:
  1. Authenticate and resolve the synced user
  2. Replay the earlier order if the Idempotency-Key was already used
  3. Re-derive the quote server-side (loyalty discount included)
  4. Persist the snapshot and notify the admin topic
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_actor, get_current_user
from app.core.security import Actor
from app.database import get_db
from app.models.user import User
from app.redis_client import get_redis
from app.schemas.message import (
    ConfirmPaymentResponse,
    MessageCreateRequest,
    MessageListResponse,
    MessageResponse,
)
from app.schemas.order import (
    OrderCountResponse,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
)
from app.services.chat_service import ChatService, message_to_dict
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreateRequest,
    response: Response,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """
    Create an order. The price is always computed here, never taken from
    the client. Returns 200 with the original order when the
    ``Idempotency-Key`` header repeats.
    """
    svc = OrderService(db, redis)
    order, created = await svc.create_order(
        user,
        platform=payload.platform,
        side=payload.side,
        destination=payload.destination,
        amount=payload.amount,
        paypal_email=payload.paypal_email,
        recipient_details=payload.recipient_details,
        idempotency_key=idempotency_key,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return OrderResponse.model_validate(order)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """The caller's orders, newest first."""
    orders, total = await OrderService(db, redis).list_orders(
        user_id=user.id, page=page, page_size=page_size,
    )
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/count", response_model=OrderCountResponse)
async def count_orders(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Total and completed order counts (drives the loyalty banner)."""
    return await OrderService(db, redis).count_for_user(user.id)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    order = await OrderService(db, redis).get_order_for(actor, order_id)
    return OrderResponse.model_validate(order)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.get("/{order_id}/messages", response_model=MessageListResponse)
async def list_messages(
    order_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """The order with its chat, oldest message first."""
    order, messages = await ChatService(db, redis).list_messages(order_id, actor)
    return MessageListResponse(
        order=OrderResponse.model_validate(order),
        messages=[MessageResponse.model_validate(message_to_dict(m)) for m in messages],
    )


@router.post(
    "/{order_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_message(
    order_id: UUID,
    payload: MessageCreateRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    message = await ChatService(db, redis).post_message(
        order_id, actor, content=payload.content, image_url=payload.image_url,
    )
    return MessageResponse.model_validate(message)


@router.post("/{order_id}/confirm-payment", response_model=ConfirmPaymentResponse)
async def confirm_payment(
    order_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Customer says the PayPal payment was sent. Posts the chat notice once."""
    return await ChatService(db, redis).confirm_payment(order_id, actor)
