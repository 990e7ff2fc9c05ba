"""
Development seeder — reference data plus a demo customer.

Usage:
    python scripts/seed_data.py

Creates:
  - the pricing config row (id=1)
  - payment channels: PayPal (13% buy / 10% sell), Zinli (sell disabled)
  - exchange rates for BS and COP (USDT and USD always price at 1)
  - a demo customer with one completed and one pending order

Idempotent: existing rows are left untouched.
"""

import asyncio
from decimal import Decimal

from sqlalchemy import select

from app.database import async_session
from app.models.exchange_rate import APP_CONFIG_ID, AppConfig, ExchangeRate
from app.models.order import Order, OrderStatus, Side
from app.models.payment_channel import PaymentChannel
from app.models.user import User
from app.services.quote_service import QuoteRequest, compute_quote

# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------

PRICING = {"fee_percent": Decimal("2.5"), "rate": Decimal("1"), "bs_rate": Decimal("45")}

CHANNELS: list[dict] = [
    {
        "key": "PAYPAL",
        "label": "PayPal",
        "commission_buy_percent": Decimal("13"),
        "commission_sell_percent": Decimal("10"),
        "provider_fee_percent": Decimal("5.4"),
        "sort_order": 0,
    },
    {
        "key": "ZINLI",
        "label": "Zinli",
        "commission_buy_percent": Decimal("8"),
        "commission_sell_percent": Decimal("8"),
        "enabled_sell": False,
        "status_text_sell": "Mantenimiento",
        "sort_order": 1,
    },
]

RATES = {"BS": Decimal("45"), "COP": Decimal("3950")}

DEMO_USER = {
    "clerk_id": "user_demo_0001",
    "email": "demo@paydesk.app",
    "full_name": "Demo Customer",
}


async def seed() -> None:
    """Insert seed rows. Safe to run multiple times."""

    async with async_session() as session:
        # 1. Pricing config
        config = await session.get(AppConfig, APP_CONFIG_ID)
        if config is None:
            session.add(AppConfig(id=APP_CONFIG_ID, **PRICING))
            print("  Pricing config: created")
        else:
            print("  Pricing config: existing")

        # 2. Channels
        existing_keys = set((await session.execute(select(PaymentChannel.key))).scalars().all())
        channels: dict[str, PaymentChannel] = {}
        for data in CHANNELS:
            if data["key"] in existing_keys:
                result = await session.execute(
                    select(PaymentChannel).where(PaymentChannel.key == data["key"])
                )
                channels[data["key"]] = result.scalar_one()
                continue
            channel = PaymentChannel(**data)
            session.add(channel)
            channels[data["key"]] = channel
        print(f"  Channels: {len(set(channels) - existing_keys)} new, {len(existing_keys)} existing")

        # 3. Rates
        existing_rates = set((await session.execute(select(ExchangeRate.currency))).scalars().all())
        for currency, rate in RATES.items():
            if currency not in existing_rates:
                session.add(ExchangeRate(currency=currency, rate=rate))
        print(f"  Rates: {len(set(RATES) - existing_rates)} new")

        await session.flush()

        # 4. Demo customer and orders
        result = await session.execute(
            select(User).where(User.clerk_id == DEMO_USER["clerk_id"])
        )
        if result.scalar_one_or_none() is not None:
            print("  Demo user: existing")
            await session.commit()
            return

        user = User(**DEMO_USER)
        session.add(user)
        await session.flush()

        paypal = channels["PAYPAL"]
        samples = [
            # (amount, destination, currency, recipient, discount, status)
            (
                Decimal("100"), "USDT - TRC20", "USDT",
                {"type": "USDT", "wallet": "TXyz1234demo", "network": "TRC20"},
                Decimal("50"), OrderStatus.COMPLETED,
            ),
            (
                Decimal("250"), "BS", "BS",
                {"type": "FIAT", "bankName": "Banesco", "phoneNumber": "04141234567", "idNumber": "V12345678"},
                Decimal("0"), OrderStatus.PENDING,
            ),
        ]
        for amount, destination, currency, recipient, discount, status in samples:
            quote = compute_quote(
                QuoteRequest.build(Side.BUY.value, paypal.key, amount, currency, discount),
                paypal,
                RATES.get(currency),
            )
            session.add(Order(
                user_id=user.id,
                platform=paypal.key,
                side=Side.BUY,
                destination=destination,
                destination_currency=currency,
                amount=amount,
                paypal_email=DEMO_USER["email"],
                recipient_details=recipient,
                commission_percent=quote.commission_percent,
                base_fee_percent=quote.base_fee_percent,
                discount_percent=quote.user_discount_percent,
                total_pct=quote.total_pct,
                exchange_rate_used=quote.exchange_rate_used,
                final_usd=quote.net_usd,
                final_usdt=quote.total_in_destination,
                status=status,
            ))

        await session.commit()
        print(f"  Demo user: {user.clerk_id} with {len(samples)} orders")


if __name__ == "__main__":
    asyncio.run(seed())
