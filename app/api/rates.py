"""
Exchange rate and public pricing config endpoints.

Rates are "units of currency per 1 USD". USDT and USD always price at 1
and need no row.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_identity
from app.core.security import Identity
from app.database import get_db
from app.redis_client import get_redis
from app.schemas.rate import PublicConfigResponse, RateResponse
from app.services.rate_service import RateService

router = APIRouter()
config_router = APIRouter()


@router.get("", response_model=list[RateResponse])
async def list_rates(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """The full rate table. Requires a signed-in user."""
    return await RateService(db, redis).list_rates()


@config_router.get("", response_model=PublicConfigResponse)
async def get_public_config(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Reference rate and base fee, served from the Redis cache when warm."""
    config = await RateService(db, redis).get_pricing_config()
    return PublicConfigResponse(rate=config.rate, fee_percent=config.fee_percent)
