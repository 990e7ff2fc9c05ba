"""
Pydantic schemas for the trusted third-party program.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from app.models.trusted import ContributorType
from app.models.verification import ReviewStatus
from app.schemas.common import CamelModel


class TrustedIntakeCreateRequest(CamelModel):
    """Application form. Required fields are enforced by the service."""
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    username: str | None = None
    phone: str | None = None
    occupation: str | None = None
    contributor_type: str | None = Field(None, examples=["FREELANCER"])
    company_name: str | None = None
    website: str | None = None
    country: str | None = None
    tx_per_month: int | None = None
    avg_per_tx_usd: Decimal | None = None
    range_min_usd: Decimal | None = None
    range_max_usd: Decimal | None = None
    monthly_total_usd: Decimal | None = None
    service_description: str | None = None
    clients_type: str | None = Field(None, examples=["PERSONS", "COMPANIES", "MIXED"])
    clients_countries: str | None = None
    accepts_chargeback_liability: bool = False
    accepts_allowed_use: bool = False
    accepts_data_processing: bool = False


class IntakeSubmitResponse(CamelModel):
    ok: bool = True
    id: UUID


class TrustedIntakeResponse(CamelModel):
    id: UUID
    user_id: UUID
    first_name: str
    last_name: str
    email: str
    username: str
    phone: str | None
    occupation: str
    contributor_type: ContributorType
    company_name: str | None
    country: str
    tx_per_month: int
    avg_per_tx_usd: Decimal
    monthly_total_usd: Decimal
    service_description: str
    status: ReviewStatus
    reviewer_id: str | None
    decision_at: datetime | None
    created_at: datetime


class TrustedLimits(CamelModel):
    max_per_tx_usd: Decimal
    max_monthly_usd: Decimal
    hold_hours: int


class IntakeDecisionRequest(CamelModel):
    decision: str = Field(..., examples=["APPROVED"])
    limits: TrustedLimits | None = None
    notes: str | None = None


class TrustedProfileResponse(CamelModel):
    id: UUID
    user_id: UUID
    enabled: bool
    status: ReviewStatus
    max_per_tx_usd: Decimal
    max_monthly_usd: Decimal
    hold_hours: int
    notes: str | None
    created_at: datetime
    updated_at: datetime


class TrustedProfileEnvelope(CamelModel):
    ok: bool = True
    profile: TrustedProfileResponse | None


class TrustedProfileUpdateRequest(CamelModel):
    max_per_tx_usd: Decimal | None = None
    max_monthly_usd: Decimal | None = None
    hold_hours: int | None = None
    enabled: bool | None = None
    notes: str | None = None
    status: str | None = None
