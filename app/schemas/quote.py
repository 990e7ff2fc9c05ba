"""
Pydantic schemas for the quote endpoint.
"""

from decimal import Decimal

from pydantic import Field

from app.models.order import Side
from app.schemas.common import CamelModel


class QuoteRequestBody(CamelModel):
    """Quote input. Field-level checks happen in the quote engine."""
    side: str | None = Field(None, examples=["BUY"])
    channel_key: str | None = Field(None, examples=["PAYPAL"])
    amount_usd: Decimal | None = Field(None, examples=[100])
    destination_currency: str | None = Field(None, examples=["USDT"])
    user_discount_percent: Decimal | None = None
    include_base_fee: bool = False


class QuoteResponse(CamelModel):
    """The canonical pricing breakdown."""
    side: Side
    channel_key: str
    channel_label: str
    destination_currency: str
    amount_usd: Decimal
    commission_percent: Decimal
    base_fee_percent: Decimal
    user_discount_percent: Decimal
    total_pct: Decimal
    net_usd: Decimal
    exchange_rate_used: Decimal
    total_in_destination: Decimal
    provider_fee_percent: Decimal
    milestone: str | None = None
