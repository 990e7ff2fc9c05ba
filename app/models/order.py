"""
Order model — a customer's exchange request with its frozen price snapshot.

- The full quote breakdown is persisted at creation and never recomputed
- Recipient details are a tagged structure (``type`` = USDT | FIAT)
- Status is admin-controlled; any status may move to any other
"""

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
    Enum as SAEnum,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Side(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_orders_amount_positive"),
        UniqueConstraint("user_id", "idempotency_key", name="uq_orders_user_idempotency_key"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )

    # Owner
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False,
    )

    # What was requested
    platform: Mapped[str] = mapped_column(String(40), nullable=False)  # channel key
    side: Mapped[Side] = mapped_column(SAEnum(Side, name="orderside"), nullable=False)
    destination: Mapped[str] = mapped_column(String(60), nullable=False)  # "USDT - TRC20", "BS"
    destination_currency: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=2), nullable=False)
    paypal_email: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_details: Mapped[dict] = mapped_column(JSONB, nullable=False)

    # Quote snapshot
    commission_percent: Mapped[Decimal] = mapped_column(Numeric(precision=7, scale=4), nullable=False)
    base_fee_percent: Mapped[Decimal] = mapped_column(Numeric(precision=7, scale=4), nullable=False)
    discount_percent: Mapped[Decimal] = mapped_column(Numeric(precision=7, scale=4), nullable=False)
    total_pct: Mapped[Decimal] = mapped_column(Numeric(precision=7, scale=4), nullable=False)
    exchange_rate_used: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=6), nullable=False)
    final_usd: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=6), nullable=False)
    final_usdt: Mapped[Decimal] = mapped_column(Numeric(precision=24, scale=6), nullable=False)

    # Status
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(OrderStatus, name="orderstatus"),
        default=OrderStatus.PENDING,
    )

    idempotency_key: Mapped[str | None] = mapped_column(String(100))

    # Reconciliation
    paypal_invoice_id: Mapped[str | None] = mapped_column(String(100))
    real_profit: Mapped[Decimal | None] = mapped_column(Numeric(precision=18, scale=2))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    user = relationship("User", back_populates="orders")
    messages = relationship("Message", back_populates="order", order_by="Message.created_at")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @staticmethod
    def parse_status(value: str) -> OrderStatus:
        """Normalize *value* to an OrderStatus. Raises ValueError if unknown."""
        return OrderStatus(str(value).strip().upper())

    def set_status(self, new_status: OrderStatus) -> bool:
        """Apply *new_status*. Returns False when it equals the current one."""
        if self.status == new_status:
            return False
        self.status = new_status
        self.updated_at = datetime.now(timezone.utc)
        return True

    def __repr__(self) -> str:
        return (
            f"<Order {self.id} {self.amount} {self.platform}->{self.destination} "
            f"status={self.status.value if self.status else 'N/A'}>"
        )


# ---------------------------------------------------------------------------
# Auto-set Python-side defaults on construction
# ---------------------------------------------------------------------------


@event.listens_for(Order, "init")
def _set_order_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "status" not in kwargs:
        target.status = OrderStatus.PENDING
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
