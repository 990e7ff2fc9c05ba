"""
Trusted third-party program, customer side.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.database import get_db
from app.models.user import User
from app.redis_client import get_redis
from app.schemas.trusted import (
    IntakeSubmitResponse,
    TrustedIntakeCreateRequest,
    TrustedProfileEnvelope,
    TrustedProfileResponse,
)
from app.services.trusted_service import TrustedService

logger = logging.getLogger(__name__)

router = APIRouter()


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.post(
    "/trusted-intake",
    response_model=IntakeSubmitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_intake(
    payload: TrustedIntakeCreateRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """
    Apply for the trusted program. All three declarations must be
    accepted. The caller's IP and user agent go into the audit trail.
    """
    intake = await TrustedService(db, redis).submit_intake(
        user,
        payload.model_dump(),
        ip=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return IntakeSubmitResponse(id=intake.id)


@router.get("/trusted-profile", response_model=TrustedProfileEnvelope)
async def get_trusted_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    profile = await TrustedService(db, redis).get_profile(user.id)
    return TrustedProfileEnvelope(
        profile=TrustedProfileResponse.model_validate(profile) if profile else None,
    )
