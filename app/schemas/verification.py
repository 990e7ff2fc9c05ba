"""
Pydantic schemas for the KYC verification workflow.
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from app.models.verification import ReviewStatus
from app.schemas.common import CamelModel
from app.schemas.message import SenderInfo


class VerificationCreateRequest(CamelModel):
    """Both images are uploaded to the image host beforehand."""
    document_url: str | None = None
    selfie_url: str | None = None


class VerificationResponse(CamelModel):
    id: UUID
    user_id: UUID
    document_url: str
    selfie_url: str
    status: ReviewStatus
    created_at: datetime
    updated_at: datetime
    user: SenderInfo | None = None


class VerificationStatusResponse(CamelModel):
    status: str = Field(..., examples=["NONE", "PENDING", "APPROVED", "REJECTED"])


class VerificationDecisionRequest(CamelModel):
    status: str = Field(..., examples=["APPROVED"])
