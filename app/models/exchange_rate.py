"""
Rate store models — per-currency exchange rates and the pricing config row.

``ExchangeRate.rate`` is units of currency per 1 USD. The synthetic ``USD``
row holds a display markup multiplier (1 + discount%/100) and is never
used as a conversion rate.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

# AppConfig is a single row
APP_CONFIG_ID = 1


class ExchangeRate(Base):
    __tablename__ = "exchange_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    currency: Mapped[str] = mapped_column(
        String(10), unique=True, index=True, nullable=False,
    )
    rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=6), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<ExchangeRate {self.currency}={self.rate}>"


class AppConfig(Base):
    __tablename__ = "app_config"
    __table_args__ = (
        CheckConstraint("id = 1", name="ck_app_config_singleton"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=APP_CONFIG_ID)
    fee_percent: Mapped[Decimal] = mapped_column(
        Numeric(precision=7, scale=4), default=Decimal("0"),
    )
    rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=6), default=Decimal("1"),
    )
    bs_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=6), default=Decimal("0"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
