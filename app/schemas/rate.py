"""
Pydantic schemas for exchange rates and the pricing configuration.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from app.schemas.common import CamelModel


class RateResponse(CamelModel):
    """One row of the rate table (units of currency per 1 USD)."""
    currency: str
    rate: Decimal
    updated_at: datetime | None = None


class RateUpsertRequest(CamelModel):
    currency: str = Field(..., min_length=1, max_length=10, examples=["BS"])
    rate: Decimal = Field(..., examples=[45.0])


class RateUpdateRequest(CamelModel):
    rate: Decimal = Field(..., examples=[46.5])


class PublicConfigResponse(CamelModel):
    rate: Decimal
    fee_percent: Decimal


class ConfigResponse(CamelModel):
    fee_percent: Decimal
    rate: Decimal
    bs_rate: Decimal


class ConfigUpdateRequest(CamelModel):
    fee_percent: Decimal | None = None
    rate: Decimal | None = None
    bs_rate: Decimal | None = None
