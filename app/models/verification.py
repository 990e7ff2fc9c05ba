"""
Verification (KYC) model — one row per user, re-submitted in place.

NONE (no row) -> PENDING -> APPROVED | REJECTED; a new submission moves
any state back to PENDING.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String, Enum as SAEnum, event
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class ReviewStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


DECISIONS = (ReviewStatus.APPROVED, ReviewStatus.REJECTED)


class Verification(Base):
    __tablename__ = "verifications"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), unique=True, nullable=False,
    )
    document_url: Mapped[str] = mapped_column(String(500), nullable=False)
    selfie_url: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[ReviewStatus] = mapped_column(
        SAEnum(ReviewStatus, name="reviewstatus"),
        default=ReviewStatus.PENDING,
    )
    reviewer_id: Mapped[str | None] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", lazy="joined")

    def resubmit(self, document_url: str, selfie_url: str) -> None:
        """Replace the documents and restart the review cycle."""
        self.document_url = document_url
        self.selfie_url = selfie_url
        self.status = ReviewStatus.PENDING
        self.reviewer_id = None
        self.updated_at = datetime.now(timezone.utc)

    def __repr__(self) -> str:
        return f"<Verification user={self.user_id} status={self.status.value if self.status else 'N/A'}>"


@event.listens_for(Verification, "init")
def _set_verification_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "status" not in kwargs:
        target.status = ReviewStatus.PENDING
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
