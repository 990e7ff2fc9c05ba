"""
Rate store — per-currency exchange rates and the pricing configuration.

Rates are read by every quote and written only by the admin. Each write
publishes the full table on the ``exchange-rates`` topic so open order
forms refresh without polling.

Pricing configuration (the AppConfig row) is loaded through one step,
``get_pricing_config``, which returns a frozen ``PricingConfig`` and
caches it in Redis until the admin write path invalidates it.
"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.errors import Internal, NotFound, ValidationError
from app.models.exchange_rate import APP_CONFIG_ID, AppConfig, ExchangeRate
from app.services.realtime_service import (
    CONFIG_TOPIC,
    EVENT_CONFIG_UPDATED,
    EVENT_RATES_UPDATED,
    RATES_TOPIC,
    RealtimePublisher,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Destinations that never need a stored rate
UNIT_RATE_CURRENCIES = frozenset({"USDT", "USD"})

# Redis keys
PRICING_CONFIG_KEY = "pricing_config"


# ---------------------------------------------------------------------------
# Pricing configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PricingConfig:
    """Snapshot of the global pricing knobs."""
    fee_percent: Decimal
    rate: Decimal
    bs_rate: Decimal

    @classmethod
    def from_row(cls, row: AppConfig) -> "PricingConfig":
        return cls(
            fee_percent=Decimal(row.fee_percent),
            rate=Decimal(row.rate),
            bs_rate=Decimal(row.bs_rate),
        )

    def to_dict(self) -> dict:
        return {
            "fee_percent": str(self.fee_percent),
            "rate": str(self.rate),
            "bs_rate": str(self.bs_rate),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PricingConfig":
        return cls(
            fee_percent=Decimal(data["fee_percent"]),
            rate=Decimal(data["rate"]),
            bs_rate=Decimal(data["bs_rate"]),
        )


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def normalize_currency(currency: str | None) -> str:
    code = (currency or "").strip().upper()
    if not code:
        raise ValidationError("Currency is required", missing=["currency"])
    return code


def parse_rate(value) -> Decimal:
    """Return *value* as a positive finite Decimal or raise ValidationError."""
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Rate must be a number")
    if not rate.is_finite() or rate <= 0:
        raise ValidationError("Rate must be a positive number")
    return rate


def rate_to_dict(row: ExchangeRate) -> dict:
    return {
        "currency": row.currency,
        "rate": str(row.rate),
        "updatedAt": row.updated_at.isoformat() if row.updated_at else None,
    }


# ---------------------------------------------------------------------------
# RateService
# ---------------------------------------------------------------------------


class RateService:
    """Reads and writes the rate table and pricing config."""

    def __init__(self, db: AsyncSession, redis):
        self.db = db
        self.redis = redis
        self.publisher = RealtimePublisher(redis)

    # --- Pricing config with cache ---

    async def get_pricing_config(self) -> PricingConfig:
        """
        Return the current PricingConfig (from cache or the database).

        Raises Internal when the configuration row is missing.
        """
        cached = await self.redis.get(PRICING_CONFIG_KEY)
        if cached is not None:
            return PricingConfig.from_dict(json.loads(cached))

        row = await self._load_config_row()
        config = PricingConfig.from_row(row)

        await self.redis.setex(
            PRICING_CONFIG_KEY,
            settings.CONFIG_CACHE_TTL_SECONDS,
            json.dumps(config.to_dict()),
        )
        return config

    async def invalidate_pricing_config(self) -> None:
        await self.redis.delete(PRICING_CONFIG_KEY)

    async def update_pricing_config(
        self,
        fee_percent: Decimal | None = None,
        rate: Decimal | None = None,
        bs_rate: Decimal | None = None,
    ) -> PricingConfig:
        """Apply the given fields, drop the cache and announce the change."""
        row = await self._load_config_row()

        if fee_percent is not None:
            if not fee_percent.is_finite() or fee_percent < 0:
                raise ValidationError("feePercent must be zero or greater")
            row.fee_percent = fee_percent
        if rate is not None:
            row.rate = parse_rate(rate)
        if bs_rate is not None:
            row.bs_rate = parse_rate(bs_rate)

        await self.db.flush()
        await self.db.commit()
        await self.invalidate_pricing_config()

        config = PricingConfig.from_row(row)
        logger.info(
            "Pricing config updated: fee=%s rate=%s bs_rate=%s",
            config.fee_percent, config.rate, config.bs_rate,
        )
        await self.publisher.publish(CONFIG_TOPIC, EVENT_CONFIG_UPDATED, {
            "feePercent": config.fee_percent,
            "rate": config.rate,
            "bsRate": config.bs_rate,
        })
        return config

    async def _load_config_row(self) -> AppConfig:
        result = await self.db.execute(
            select(AppConfig).where(AppConfig.id == APP_CONFIG_ID)
        )
        row = result.scalar_one_or_none()
        if row is None:
            logger.error("AppConfig row %s is missing", APP_CONFIG_ID)
            raise Internal("Pricing configuration missing")
        return row

    # --- Rate table ---

    async def list_rates(self) -> list[ExchangeRate]:
        result = await self.db.execute(
            select(ExchangeRate).order_by(ExchangeRate.currency.asc())
        )
        return list(result.scalars().all())

    async def get_rate(self, currency: str) -> ExchangeRate | None:
        result = await self.db.execute(
            select(ExchangeRate).where(ExchangeRate.currency == currency.upper())
        )
        return result.scalar_one_or_none()

    async def upsert_rate(self, currency: str, rate) -> ExchangeRate:
        """Create or overwrite the rate for *currency*."""
        code = normalize_currency(currency)
        value = parse_rate(rate)

        row = await self.get_rate(code)
        if row is None:
            row = ExchangeRate(currency=code, rate=value)
            self.db.add(row)
        else:
            row.rate = value
        await self.db.flush()
        await self.db.commit()

        logger.info("Rate %s set to %s", code, value)
        await self._publish_rates()
        return row

    async def update_rate(self, currency: str, rate) -> ExchangeRate:
        code = normalize_currency(currency)
        value = parse_rate(rate)

        row = await self.get_rate(code)
        if row is None:
            raise NotFound(f"No rate for {code}")
        row.rate = value
        await self.db.flush()
        await self.db.commit()

        logger.info("Rate %s updated to %s", code, value)
        await self._publish_rates()
        return row

    async def delete_rate(self, currency: str) -> None:
        code = normalize_currency(currency)
        row = await self.get_rate(code)
        if row is None:
            raise NotFound(f"No rate for {code}")
        await self.db.delete(row)
        await self.db.flush()
        await self.db.commit()

        logger.info("Rate %s deleted", code)
        await self._publish_rates()

    async def _publish_rates(self) -> None:
        rates = await self.list_rates()
        await self.publisher.publish(
            RATES_TOPIC,
            EVENT_RATES_UPDATED,
            {"rates": [rate_to_dict(r) for r in rates]},
        )
