"""
Back-office endpoints. Every route requires the admin policy.

Covers order management and profit reconciliation, the rate table and
pricing config, payment channels, KYC review and the trusted program.
"""

import logging
from dataclasses import asdict
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_admin
from app.core.security import Identity
from app.database import get_db
from app.redis_client import get_redis
from app.schemas.channel import ChannelCreateRequest, ChannelResponse, ChannelUpdateRequest
from app.schemas.common import OkResponse
from app.schemas.order import (
    InvoiceResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    ProfitResponse,
    StatsResponse,
)
from app.schemas.rate import (
    ConfigResponse,
    ConfigUpdateRequest,
    RateResponse,
    RateUpdateRequest,
    RateUpsertRequest,
)
from app.schemas.trusted import (
    IntakeDecisionRequest,
    TrustedIntakeResponse,
    TrustedProfileEnvelope,
    TrustedProfileResponse,
    TrustedProfileUpdateRequest,
)
from app.schemas.verification import VerificationDecisionRequest, VerificationResponse
from app.services.channel_service import ChannelService
from app.services.order_service import OrderService
from app.services.rate_service import RateService
from app.services.trusted_service import TrustedService
from app.services.verification_service import VerificationService, verification_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@router.get("/orders", response_model=OrderListResponse)
async def list_all_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: str | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Every customer's orders, newest first, optionally by status."""
    orders, total = await OrderService(db, redis).list_orders(
        status=status_filter, page=page, page_size=page_size,
    )
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.patch("/orders/{order_id}", response_model=OrderResponse)
async def update_order_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """
    Move an order to a new status (upper-cased). The customer is told
    over their realtime topic, push, and by email once COMPLETED.
    """
    order = await OrderService(db, redis).set_order_status(
        order_id, payload.status, actor_is_admin=True,
    )
    return OrderResponse.model_validate(order)


@router.post("/orders/{order_id}/invoice", response_model=InvoiceResponse)
async def issue_invoice(
    order_id: UUID,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """
    Create and send the PayPal invoice for the order amount. Amounts under
    the configured threshold bill from the secondary account.
    """
    return await OrderService(db, redis).issue_invoice(order_id)


@router.post("/orders/{order_id}/calculate-profit", response_model=ProfitResponse)
async def calculate_profit(
    order_id: UUID,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Reconcile against the PayPal invoice payment and store realProfit."""
    return await OrderService(db, redis).calculate_profit(order_id)


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    return await OrderService(db, redis).stats()


# ---------------------------------------------------------------------------
# Rates and pricing config
# ---------------------------------------------------------------------------


@router.get("/rates", response_model=list[RateResponse])
async def list_rates(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    return await RateService(db, redis).list_rates()


@router.post("/rates", response_model=RateResponse)
async def upsert_rate(
    payload: RateUpsertRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Create or overwrite the rate for a currency code."""
    return await RateService(db, redis).upsert_rate(payload.currency, payload.rate)


@router.patch("/rates/{currency}", response_model=RateResponse)
async def update_rate(
    currency: str,
    payload: RateUpdateRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    return await RateService(db, redis).update_rate(currency, payload.rate)


@router.delete("/rates/{currency}", response_model=OkResponse)
async def delete_rate(
    currency: str,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    await RateService(db, redis).delete_rate(currency)
    return OkResponse()


@router.get("/config", response_model=ConfigResponse)
async def get_config(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    config = await RateService(db, redis).get_pricing_config()
    return ConfigResponse(**asdict(config))


@router.patch("/config", response_model=ConfigResponse)
async def update_config(
    payload: ConfigUpdateRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    config = await RateService(db, redis).update_pricing_config(
        fee_percent=payload.fee_percent, rate=payload.rate, bs_rate=payload.bs_rate,
    )
    return ConfigResponse(**asdict(config))


# ---------------------------------------------------------------------------
# Payment channels
# ---------------------------------------------------------------------------


@router.get("/payment-channels", response_model=list[ChannelResponse])
async def list_channels(db: AsyncSession = Depends(get_db)):
    return await ChannelService(db).list_all()


@router.post(
    "/payment-channels",
    response_model=ChannelResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_channel(
    payload: ChannelCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await ChannelService(db).create(**payload.model_dump())


@router.patch("/payment-channels/{channel_id}", response_model=ChannelResponse)
async def update_channel(
    channel_id: UUID,
    payload: ChannelUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Partial update. ``archived: true`` hides the channel everywhere."""
    return await ChannelService(db).update(
        channel_id, **payload.model_dump(exclude_unset=True),
    )


@router.delete("/payment-channels/{channel_id}", response_model=OkResponse)
async def delete_channel(
    channel_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    await ChannelService(db).delete(channel_id)
    return OkResponse()


# ---------------------------------------------------------------------------
# KYC review
# ---------------------------------------------------------------------------


@router.get("/verifications", response_model=list[VerificationResponse])
async def list_verifications(
    status_filter: str | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    rows = await VerificationService(db, redis).list_all(status_filter)
    return [verification_to_dict(v) for v in rows]


@router.patch("/verifications/{verification_id}/status", response_model=VerificationResponse)
async def decide_verification(
    verification_id: UUID,
    payload: VerificationDecisionRequest,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """APPROVED or REJECTED; anything else is 400."""
    verification = await VerificationService(db, redis).decide(
        verification_id, payload.status, actor_is_admin=True, reviewer=admin.subject,
    )
    return verification_to_dict(verification)


# ---------------------------------------------------------------------------
# Trusted program
# ---------------------------------------------------------------------------


@router.get("/trusted-intake", response_model=list[TrustedIntakeResponse])
async def list_intakes(
    status_filter: str | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    return await TrustedService(db, redis).list_intakes(status_filter)


@router.patch("/trusted-intake/{intake_id}", response_model=TrustedIntakeResponse)
async def decide_intake(
    intake_id: UUID,
    payload: IntakeDecisionRequest,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Approve (optionally with limits, which creates the profile) or reject."""
    return await TrustedService(db, redis).decide_intake(
        intake_id,
        payload.decision,
        reviewer=admin.subject,
        limits=payload.limits.model_dump() if payload.limits else None,
        notes=payload.notes,
    )


@router.get("/trusted-profile/{user_id}", response_model=TrustedProfileEnvelope)
async def get_trusted_profile(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    profile = await TrustedService(db, redis).get_profile(user_id)
    return TrustedProfileEnvelope(
        profile=TrustedProfileResponse.model_validate(profile) if profile else None,
    )


@router.patch("/trusted-profile/{user_id}", response_model=TrustedProfileEnvelope)
async def update_trusted_profile(
    user_id: UUID,
    payload: TrustedProfileUpdateRequest,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Edit limits; creates the profile with default limits when absent."""
    profile = await TrustedService(db, redis).update_profile(
        user_id, admin.subject, **payload.model_dump(exclude_unset=True),
    )
    return TrustedProfileEnvelope(profile=TrustedProfileResponse.model_validate(profile))
