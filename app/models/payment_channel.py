"""
Payment channel model — a configured payment method (PayPal, Zelle, ...).

``key`` is the stable identifier used by quotes and orders; ``label`` is
display-only. A channel is offerable on a side only when it is visible,
not archived, and enabled for that side.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, event
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.order import Side


class PaymentChannel(Base):
    __tablename__ = "payment_channels"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    key: Mapped[str] = mapped_column(String(40), unique=True, index=True, nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False)

    commission_buy_percent: Mapped[Decimal] = mapped_column(
        Numeric(precision=7, scale=4), default=Decimal("0"),
    )
    commission_sell_percent: Mapped[Decimal] = mapped_column(
        Numeric(precision=7, scale=4), default=Decimal("0"),
    )
    provider_fee_percent: Mapped[Decimal] = mapped_column(
        Numeric(precision=7, scale=4), default=Decimal("0"),
    )

    enabled_buy: Mapped[bool] = mapped_column(Boolean, default=True)
    enabled_sell: Mapped[bool] = mapped_column(Boolean, default=True)
    visible: Mapped[bool] = mapped_column(Boolean, default=True)
    status_text_buy: Mapped[str | None] = mapped_column(String(200))
    status_text_sell: Mapped[str | None] = mapped_column(String(200))
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ------------------------------------------------------------------
    # Side helpers
    # ------------------------------------------------------------------

    def enabled_for(self, side: Side) -> bool:
        return self.enabled_buy if side == Side.BUY else self.enabled_sell

    def is_offerable(self, side: Side) -> bool:
        """visible && not archived && enabled on *side*."""
        return bool(self.visible and self.archived_at is None and self.enabled_for(side))

    def commission_for(self, side: Side) -> Decimal:
        return self.commission_buy_percent if side == Side.BUY else self.commission_sell_percent

    def status_text_for(self, side: Side) -> str | None:
        return self.status_text_buy if side == Side.BUY else self.status_text_sell

    def __repr__(self) -> str:
        return f"<PaymentChannel {self.key} buy={self.commission_buy_percent} sell={self.commission_sell_percent}>"


@event.listens_for(PaymentChannel, "init")
def _set_channel_defaults(target, args, kwargs):
    defaults = {
        "commission_buy_percent": Decimal("0"),
        "commission_sell_percent": Decimal("0"),
        "provider_fee_percent": Decimal("0"),
        "enabled_buy": True,
        "enabled_sell": True,
        "visible": True,
        "sort_order": 0,
    }
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    for name, value in defaults.items():
        if name not in kwargs:
            setattr(target, name, value)
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
