"""
Pydantic schemas for order creation, listing and admin management.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from app.models.order import OrderStatus, Side
from app.schemas.common import CamelModel

# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class OrderCreateRequest(CamelModel):
    """
    New order. ``recipientDetails`` is a tagged structure:

        {"type": "USDT", "wallet": "...", "network": "TRC20"}
        {"type": "FIAT", "bankName": "...", "phoneNumber": "...", "idNumber": "..."}

    Missing fields are reported together by the order service.
    """
    platform: str | None = Field(None, examples=["PAYPAL"])
    side: str = Field("BUY", examples=["BUY"])
    destination: str | None = Field(None, examples=["USDT - TRC20"])
    amount: Decimal | None = Field(None, examples=[100])
    paypal_email: str | None = Field(None, examples=["buyer@example.com"])
    recipient_details: dict | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class OrderResponse(CamelModel):
    id: UUID
    user_id: UUID
    platform: str
    side: Side
    destination: str
    destination_currency: str
    amount: Decimal
    paypal_email: str
    recipient_details: dict
    commission_percent: Decimal
    base_fee_percent: Decimal
    discount_percent: Decimal
    total_pct: Decimal
    exchange_rate_used: Decimal
    final_usd: Decimal
    final_usdt: Decimal
    status: OrderStatus
    paypal_invoice_id: str | None = None
    real_profit: Decimal | None = None
    created_at: datetime
    updated_at: datetime


class OrderListResponse(CamelModel):
    orders: list[OrderResponse]
    total: int
    page: int
    page_size: int


class OrderCountResponse(CamelModel):
    count: int
    completed: int


class OrderStatusUpdate(CamelModel):
    status: str = Field(..., examples=["COMPLETED"])


class InvoiceResponse(CamelModel):
    order_id: UUID
    paypal_invoice_id: str
    account: str = Field(..., examples=["MAIN"])


class ProfitResponse(CamelModel):
    order_id: UUID
    paypal_invoice_id: str
    transaction_id: str
    gross_amount: Decimal
    fee: Decimal
    net_amount: Decimal
    final_usd: Decimal
    real_profit: Decimal


class StatsResponse(CamelModel):
    orders: dict[str, int]
    completed_amount_usd: Decimal
    completed_final_usd: Decimal
    completed_real_profit: Decimal
    pending_verifications: int
    pending_trusted_intakes: int
