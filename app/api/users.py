"""
Signed-in user endpoints.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.database import get_db
from app.models.user import User
from app.schemas.user import PushTokenRequest, SuccessResponse, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    return UserResponse.model_validate(user)


@router.patch("/me/push-token", response_model=SuccessResponse)
async def update_push_token(
    payload: PushTokenRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Store (or clear, with null) the Expo push token for this device."""
    user.expo_push_token = (payload.expo_push_token or "").strip() or None
    await db.flush()
    logger.info("Push token %s for user %s", "set" if user.expo_push_token else "cleared", user.id)
    return SuccessResponse()
