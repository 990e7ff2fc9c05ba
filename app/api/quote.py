"""
Quote endpoint — the price breakdown shown before an order is placed.

Public. When the caller sends a valid bearer token and no explicit
discount, the loyalty discount for their next order is applied (BUY only).
"""

import logging
from dataclasses import replace

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import find_user, get_optional_identity
from app.core.security import Identity
from app.database import get_db
from app.redis_client import get_redis
from app.schemas.quote import QuoteRequestBody, QuoteResponse
from app.services.quote_service import QuoteRequest, QuoteService, loyalty_discount

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=QuoteResponse)
async def create_quote(
    body: QuoteRequestBody,
    identity: Identity | None = Depends(get_optional_identity),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """
    Price an amount on a channel and side into a destination currency.

    Errors: 400 invalid input / channel unavailable / invalid rate,
    404 unknown channel or no stored rate.
    """
    request = QuoteRequest.build(
        body.side,
        body.channel_key,
        body.amount_usd,
        body.destination_currency,
        body.user_discount_percent or 0,
        body.include_base_fee,
    )
    svc = QuoteService(db, redis)

    milestone = None
    if body.user_discount_percent is None and identity is not None:
        user = await find_user(db, identity.subject)
        if user is not None:
            completed = await svc.completed_order_count(user.id)
            discount, milestone = loyalty_discount(request.side, completed)
            request = replace(request, user_discount_percent=discount)

    result = await svc.quote(request)
    return QuoteResponse(**result.as_dict(), milestone=milestone)
