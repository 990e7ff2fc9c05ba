"""
Trusted third-party program models.

- TrustedIntake  — an application, reviewed APPROVED / REJECTED by an admin
- TrustedProfile — per-user limits materialized on approval (one per user)
- TrustedAudit   — append-only trail of submissions, decisions and edits
"""

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Enum as SAEnum,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.verification import ReviewStatus

# Limits applied when an admin creates a profile without specifying them
DEFAULT_MAX_PER_TX_USD = Decimal("200")
DEFAULT_MAX_MONTHLY_USD = Decimal("1000")
DEFAULT_HOLD_HOURS = 48


class ContributorType(str, enum.Enum):
    COMPANY = "COMPANY"
    FREELANCER = "FREELANCER"


class AuditAction(str, enum.Enum):
    INTAKE_SUBMITTED = "INTAKE_SUBMITTED"
    INTAKE_APPROVED = "INTAKE_APPROVED"
    INTAKE_REJECTED = "INTAKE_REJECTED"
    PROFILE_UPDATED = "PROFILE_UPDATED"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TrustedIntake(Base):
    __tablename__ = "trusted_intakes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False,
    )

    # Applicant
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30))
    occupation: Mapped[str] = mapped_column(String(100), nullable=False)
    contributor_type: Mapped[ContributorType] = mapped_column(
        SAEnum(ContributorType, name="contributortype"), nullable=False,
    )
    company_name: Mapped[str | None] = mapped_column(String(200))
    website: Mapped[str | None] = mapped_column(String(255))
    country: Mapped[str] = mapped_column(String(60), nullable=False)

    # Expected volume
    tx_per_month: Mapped[int] = mapped_column(Integer, nullable=False)
    avg_per_tx_usd: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=2), nullable=False)
    range_min_usd: Mapped[Decimal | None] = mapped_column(Numeric(precision=18, scale=2))
    range_max_usd: Mapped[Decimal | None] = mapped_column(Numeric(precision=18, scale=2))
    monthly_total_usd: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=2), nullable=False)
    service_description: Mapped[str] = mapped_column(Text, nullable=False)
    clients_type: Mapped[str | None] = mapped_column(String(20))
    clients_countries: Mapped[str | None] = mapped_column(String(255))

    # Declarations
    accepts_chargeback_liability: Mapped[bool] = mapped_column(Boolean, default=False)
    accepts_allowed_use: Mapped[bool] = mapped_column(Boolean, default=False)
    accepts_data_processing: Mapped[bool] = mapped_column(Boolean, default=False)

    # Request metadata
    ip: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(String(500))

    # Review
    status: Mapped[ReviewStatus] = mapped_column(
        SAEnum(ReviewStatus, name="reviewstatus", create_type=False),
        default=ReviewStatus.PENDING,
    )
    reviewer_id: Mapped[str | None] = mapped_column(String(64))
    decision_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    user = relationship("User", lazy="joined")

    def decide(self, decision: ReviewStatus, reviewer_id: str) -> None:
        self.status = decision
        self.reviewer_id = reviewer_id
        self.decision_at = _now()


class TrustedProfile(Base):
    __tablename__ = "trusted_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), unique=True, nullable=False,
    )
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    status: Mapped[ReviewStatus] = mapped_column(
        SAEnum(ReviewStatus, name="reviewstatus", create_type=False),
        default=ReviewStatus.APPROVED,
    )
    max_per_tx_usd: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), default=DEFAULT_MAX_PER_TX_USD,
    )
    max_monthly_usd: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), default=DEFAULT_MAX_MONTHLY_USD,
    )
    hold_hours: Mapped[int] = mapped_column(Integer, default=DEFAULT_HOLD_HOURS)
    notes: Mapped[str | None] = mapped_column(Text)
    reviewer_id: Mapped[str | None] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, onupdate=_now,
    )

    @property
    def is_active(self) -> bool:
        return bool(self.enabled and self.status == ReviewStatus.APPROVED)

    def allows(self, amount_usd: Decimal) -> bool:
        """True when a single transaction of *amount_usd* fits this profile."""
        return self.is_active and amount_usd <= self.max_per_tx_usd


class TrustedAudit(Base):
    __tablename__ = "trusted_audits"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False,
    )
    intake_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("trusted_intakes.id"), nullable=True,
    )
    action: Mapped[AuditAction] = mapped_column(
        SAEnum(AuditAction, name="trustedauditaction"), nullable=False,
    )
    details: Mapped[dict] = mapped_column(JSONB, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)


@event.listens_for(TrustedIntake, "init")
def _set_intake_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "status" not in kwargs:
        target.status = ReviewStatus.PENDING
    if "created_at" not in kwargs:
        target.created_at = _now()


@event.listens_for(TrustedProfile, "init")
def _set_profile_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "enabled" not in kwargs:
        target.enabled = True
    if "status" not in kwargs:
        target.status = ReviewStatus.APPROVED
    if "max_per_tx_usd" not in kwargs:
        target.max_per_tx_usd = DEFAULT_MAX_PER_TX_USD
    if "max_monthly_usd" not in kwargs:
        target.max_monthly_usd = DEFAULT_MAX_MONTHLY_USD
    if "hold_hours" not in kwargs:
        target.hold_hours = DEFAULT_HOLD_HOURS
    if "created_at" not in kwargs:
        target.created_at = _now()
    if "updated_at" not in kwargs:
        target.updated_at = _now()


@event.listens_for(TrustedAudit, "init")
def _set_audit_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "details" not in kwargs:
        target.details = {}
    if "created_at" not in kwargs:
        target.created_at = _now()
