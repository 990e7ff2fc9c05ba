"""
Customer KYC endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.database import get_db
from app.models.user import User
from app.redis_client import get_redis
from app.schemas.verification import (
    VerificationCreateRequest,
    VerificationResponse,
    VerificationStatusResponse,
)
from app.services.verification_service import VerificationService, verification_to_dict

router = APIRouter()


@router.post("", response_model=VerificationResponse, status_code=status.HTTP_201_CREATED)
async def submit_verification(
    payload: VerificationCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """
    Submit (or resubmit) identity documents. Images must already be
    hosted; only their URLs are stored. The review restarts at PENDING.
    """
    verification = await VerificationService(db, redis).submit(
        user, payload.document_url, payload.selfie_url,
    )
    return VerificationResponse.model_validate(verification_to_dict(verification, user))


@router.get("/status", response_model=VerificationStatusResponse)
async def verification_status(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    return {"status": await VerificationService(db, redis).status_for(user.id)}
