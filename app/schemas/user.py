"""
Pydantic schemas for user sync and device registration.
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel


class UserResponse(CamelModel):
    id: UUID
    clerk_id: str
    email: str | None
    full_name: str | None
    created_at: datetime


class PushTokenRequest(CamelModel):
    expo_push_token: str | None = Field(None, examples=["ExponentPushToken[xxxxxxxx]"])


class SuccessResponse(CamelModel):
    success: bool = True


class UserSyncPayload(CamelModel):
    """Provider webhook body (user.created / user.updated)."""
    type: str = "user.created"
    data: dict
