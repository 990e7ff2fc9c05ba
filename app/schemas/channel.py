"""
Pydantic schemas for the payment channel registry.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel


class PublicChannelResponse(CamelModel):
    id: UUID
    key: str
    label: str
    commission_percent: Decimal
    available: bool
    display_status: str


class ChannelResponse(CamelModel):
    id: UUID
    key: str
    label: str
    commission_buy_percent: Decimal
    commission_sell_percent: Decimal
    provider_fee_percent: Decimal
    enabled_buy: bool
    enabled_sell: bool
    visible: bool
    status_text_buy: str | None
    status_text_sell: str | None
    sort_order: int
    archived_at: datetime | None
    created_at: datetime
    updated_at: datetime


class ChannelCreateRequest(CamelModel):
    key: str = Field(..., min_length=2, max_length=40, examples=["PAYPAL"])
    label: str = Field(..., min_length=2, max_length=100, examples=["PayPal"])
    commission_buy_percent: Decimal = Field(..., ge=0)
    commission_sell_percent: Decimal = Field(..., ge=0)
    provider_fee_percent: Decimal = Field(Decimal("0"), ge=0)
    enabled_buy: bool = True
    enabled_sell: bool = True
    visible: bool = True
    status_text_buy: str | None = None
    status_text_sell: str | None = None
    sort_order: int = 0


class ChannelUpdateRequest(CamelModel):
    label: str | None = None
    commission_buy_percent: Decimal | None = None
    commission_sell_percent: Decimal | None = None
    provider_fee_percent: Decimal | None = None
    enabled_buy: bool | None = None
    enabled_sell: bool | None = None
    visible: bool | None = None
    status_text_buy: str | None = None
    status_text_sell: str | None = None
    sort_order: int | None = None
    archived: bool | None = None
