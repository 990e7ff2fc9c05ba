"""
Quote engine — deterministic price breakdown for a prospective order.

    totalPct           = max(0, baseFee + channelCommission - userDiscount)
    netUsd             = amountUsd * (1 - totalPct / 100)
    totalInDestination = netUsd * exchangeRateUsed

``compute_quote`` is pure: callers load the channel, the stored rate and
(optionally) the pricing config, and the same function serves display,
order creation and reconciliation. ``QuoteService`` does the loading.

The loyalty discount is a separate policy; it is computed from the
caller's completed-order count before the engine is called.
"""

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidRate, NotFound, Unavailable, ValidationError
from app.models.order import Order, OrderStatus, Side
from app.models.payment_channel import PaymentChannel
from app.services.rate_service import UNIT_RATE_CURRENCIES, PricingConfig, RateService

logger = logging.getLogger(__name__)

# Monetary outputs match the Numeric(20, 6) order snapshot columns
MONEY_PLACES = Decimal("0.000001")
# Input amounts match Order.amount, Numeric(18, 2)
AMOUNT_PLACES = Decimal("0.01")

UNAVAILABLE_FALLBACK = "Channel unavailable"

# Loyalty milestone discounts (percent)
FIRST_ORDER_DISCOUNT = Decimal("50")
FIFTH_ORDER_DISCOUNT = Decimal("18")
LOYAL_DISCOUNT = Decimal("10")
LOYAL_FROM_ORDER = 15


# ---------------------------------------------------------------------------
# Loyalty policy
# ---------------------------------------------------------------------------


def discount_for_order_index(n: int) -> Decimal:
    """
    Discount percent earned by the customer's *n*-th order (1-based).

        #1    -> 50%
        #5    -> 18%
        #15+  -> 10%
        other -> 0%
    """
    if n == 1:
        return FIRST_ORDER_DISCOUNT
    if n == 5:
        return FIFTH_ORDER_DISCOUNT
    if n >= LOYAL_FROM_ORDER:
        return LOYAL_DISCOUNT
    return Decimal("0")


def milestone_for_order_index(n: int) -> str | None:
    if n == 1:
        return "FIRST"
    if n == 5:
        return "FIFTH"
    if n >= LOYAL_FROM_ORDER:
        return "FIFTEEN_PLUS"
    return None


def loyalty_discount(side: Side, completed_count: int) -> tuple[Decimal, str | None]:
    """Discount for the caller's next order. BUY only; SELL always gets 0."""
    if side != Side.BUY:
        return Decimal("0"), None
    n = completed_count + 1
    return discount_for_order_index(n), milestone_for_order_index(n)


# ---------------------------------------------------------------------------
# Request / result
# ---------------------------------------------------------------------------


def _to_decimal(value, field: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid {field}", missing=[field])
    if not number.is_finite():
        raise ValidationError(f"Invalid {field}", missing=[field])
    return number


@dataclass(frozen=True)
class QuoteRequest:
    side: Side
    channel_key: str
    amount_usd: Decimal
    destination_currency: str
    user_discount_percent: Decimal = Decimal("0")
    include_base_fee: bool = False

    @classmethod
    def build(
        cls,
        side,
        channel_key,
        amount_usd,
        destination_currency,
        user_discount_percent=0,
        include_base_fee: bool = False,
    ) -> "QuoteRequest":
        """Normalize raw input. Raises ValidationError on the first bad field."""
        try:
            parsed_side = Side(str(side or "").strip().upper())
        except ValueError:
            raise ValidationError("Invalid side", missing=["side"])

        key = str(channel_key or "").strip().upper()
        if not key:
            raise ValidationError("channelKey is required", missing=["channelKey"])

        # Priced on the same cent amount that gets stored on the order
        amount = _to_decimal(amount_usd, "amountUsd")
        try:
            amount = amount.quantize(AMOUNT_PLACES, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise ValidationError("Invalid amountUsd", missing=["amountUsd"])
        if amount <= 0:
            raise ValidationError("amountUsd must be greater than zero", missing=["amountUsd"])

        destination = str(destination_currency or "").strip().upper()
        if not destination:
            raise ValidationError(
                "destinationCurrency is required", missing=["destinationCurrency"],
            )

        discount = _to_decimal(user_discount_percent or 0, "userDiscountPercent")
        if discount < 0:
            raise ValidationError(
                "userDiscountPercent cannot be negative", missing=["userDiscountPercent"],
            )

        return cls(
            side=parsed_side,
            channel_key=key,
            amount_usd=amount,
            destination_currency=destination,
            user_discount_percent=discount,
            include_base_fee=bool(include_base_fee),
        )


@dataclass(frozen=True)
class QuoteResult:
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
    provider_fee_percent: Decimal = Decimal("0")

    def as_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Pure computation
# ---------------------------------------------------------------------------


def resolve_exchange_rate(destination_currency: str, stored_rate: Decimal | None) -> Decimal:
    """1 for USDT/USD; otherwise the stored rate, which must be positive and finite."""
    if destination_currency in UNIT_RATE_CURRENCIES:
        return Decimal("1")
    if stored_rate is None:
        raise NotFound(f"No rate for {destination_currency}")
    rate = Decimal(stored_rate)
    if not rate.is_finite() or rate <= 0:
        raise InvalidRate(f"Invalid rate for {destination_currency}")
    return rate


def compute_quote(
    request: QuoteRequest,
    channel: PaymentChannel | None,
    stored_rate: Decimal | None,
    pricing: PricingConfig | None = None,
) -> QuoteResult:
    """Price *request* against already-loaded channel, rate and config."""
    if channel is None or channel.archived_at is not None:
        raise NotFound("Payment channel not found")

    if not channel.is_offerable(request.side):
        raise Unavailable(channel.status_text_for(request.side) or UNAVAILABLE_FALLBACK)

    channel_percent = Decimal(channel.commission_for(request.side) or 0)

    base_fee_percent = Decimal("0")
    if request.include_base_fee and pricing is not None:
        base_fee_percent = pricing.fee_percent

    total_pct = max(
        Decimal("0"),
        base_fee_percent + channel_percent - request.user_discount_percent,
    )

    rate = resolve_exchange_rate(request.destination_currency, stored_rate)

    net_usd = (request.amount_usd * (1 - total_pct / 100)).quantize(
        MONEY_PLACES, rounding=ROUND_HALF_UP
    )
    total_in_destination = (net_usd * rate).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)

    return QuoteResult(
        side=request.side,
        channel_key=channel.key,
        channel_label=channel.label,
        destination_currency=request.destination_currency,
        amount_usd=request.amount_usd,
        commission_percent=channel_percent,
        base_fee_percent=base_fee_percent,
        user_discount_percent=request.user_discount_percent,
        total_pct=total_pct,
        net_usd=net_usd,
        exchange_rate_used=rate,
        total_in_destination=total_in_destination,
        provider_fee_percent=Decimal(channel.provider_fee_percent or 0),
    )


# ---------------------------------------------------------------------------
# QuoteService
# ---------------------------------------------------------------------------


class QuoteService:
    """Loads quote inputs from the stores and runs the engine."""

    def __init__(self, db: AsyncSession, redis):
        self.db = db
        self.redis = redis
        self.rates = RateService(db, redis)

    async def get_channel(self, key: str) -> PaymentChannel | None:
        result = await self.db.execute(
            select(PaymentChannel).where(PaymentChannel.key == key.upper())
        )
        return result.scalar_one_or_none()

    async def completed_order_count(self, user_id) -> int:
        result = await self.db.execute(
            select(func.count(Order.id)).where(
                Order.user_id == user_id,
                Order.status == OrderStatus.COMPLETED,
            )
        )
        return int(result.scalar_one() or 0)

    async def quote(self, request: QuoteRequest) -> QuoteResult:
        """
        Price *request*.

        Raises NotFound (channel or rate), Unavailable or InvalidRate.
        """
        channel = await self.get_channel(request.channel_key)
        if channel is None or channel.archived_at is not None:
            raise NotFound("Payment channel not found")
        if not channel.is_offerable(request.side):
            raise Unavailable(channel.status_text_for(request.side) or UNAVAILABLE_FALLBACK)

        stored_rate = None
        if request.destination_currency not in UNIT_RATE_CURRENCIES:
            row = await self.rates.get_rate(request.destination_currency)
            stored_rate = row.rate if row is not None else None

        pricing = None
        if request.include_base_fee:
            pricing = await self.rates.get_pricing_config()

        result = compute_quote(request, channel, stored_rate, pricing)
        logger.debug(
            "Quote %s %s %s->%s total_pct=%s net=%s",
            result.side.value, result.channel_key, result.amount_usd,
            result.destination_currency, result.total_pct, result.net_usd,
        )
        return result
