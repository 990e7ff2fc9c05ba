"""Tests for the quote engine — pricing math, loyalty policy and the /quote endpoint."""

from decimal import Decimal

import pytest

from app.core.errors import InvalidRate, NotFound, Unavailable, ValidationError
from app.models.order import Side
from app.services.quote_service import (
    QuoteRequest,
    QuoteService,
    compute_quote,
    discount_for_order_index,
    loyalty_discount,
)
from app.services.rate_service import PricingConfig
from tests.helpers import make_result


def _request(**overrides) -> QuoteRequest:
    values = {
        "side": "BUY",
        "channel_key": "PAYPAL",
        "amount_usd": 100,
        "destination_currency": "USDT",
        "user_discount_percent": 0,
    }
    values.update(overrides)
    return QuoteRequest.build(**values)


# ---------------------------------------------------------------------------
# compute_quote
# ---------------------------------------------------------------------------


class TestComputeQuote:

    def test_paypal_buy_to_usdt(self, make_channel):
        """$100 at 13% commission to USDT nets 87 at rate 1."""
        result = compute_quote(_request(), make_channel(), None)
        assert result.total_pct == Decimal("13")
        assert result.net_usd == Decimal("87")
        assert result.exchange_rate_used == Decimal("1")
        assert result.total_in_destination == Decimal("87")
        assert result.channel_label == "PayPal"

    def test_paypal_buy_to_bs_uses_stored_rate(self, make_channel):
        result = compute_quote(
            _request(destination_currency="BS"), make_channel(), Decimal("45.0"),
        )
        assert result.exchange_rate_used == Decimal("45.0")
        assert result.total_in_destination == Decimal("3915")

    def test_first_order_discount_zeroes_total(self, make_channel):
        """50% discount against 13% commission floors at 0."""
        discount, milestone = loyalty_discount(Side.BUY, 0)
        result = compute_quote(
            _request(user_discount_percent=discount), make_channel(), None,
        )
        assert milestone == "FIRST"
        assert result.user_discount_percent == Decimal("50")
        assert result.total_pct == Decimal("0")
        assert result.net_usd == Decimal("100")

    def test_total_pct_never_negative(self, make_channel):
        result = compute_quote(_request(user_discount_percent=1000), make_channel(), None)
        assert result.total_pct == Decimal("0")

    def test_sell_uses_sell_commission(self, make_channel):
        result = compute_quote(_request(side="SELL"), make_channel(), None)
        assert result.commission_percent == Decimal("10")
        assert result.net_usd == Decimal("90")

    def test_usd_destination_prices_at_one(self, make_channel):
        result = compute_quote(_request(destination_currency="usd"), make_channel(), None)
        assert result.destination_currency == "USD"
        assert result.exchange_rate_used == Decimal("1")

    def test_base_fee_added_when_requested(self, make_channel):
        pricing = PricingConfig(fee_percent=Decimal("2"), rate=Decimal("1"), bs_rate=Decimal("45"))
        result = compute_quote(_request(include_base_fee=True), make_channel(), None, pricing)
        assert result.base_fee_percent == Decimal("2")
        assert result.total_pct == Decimal("15")
        assert result.net_usd == Decimal("85")

    def test_base_fee_ignored_by_default(self, make_channel):
        pricing = PricingConfig(fee_percent=Decimal("2"), rate=Decimal("1"), bs_rate=Decimal("45"))
        result = compute_quote(_request(), make_channel(), None, pricing)
        assert result.base_fee_percent == Decimal("0")

    def test_deterministic(self, make_channel):
        channel = make_channel()
        a = compute_quote(_request(destination_currency="BS"), channel, Decimal("45"))
        b = compute_quote(_request(destination_currency="BS"), channel, Decimal("45"))
        assert a == b

    def test_fractional_amount_is_quantized(self, make_channel):
        result = compute_quote(
            _request(amount_usd="33.33", destination_currency="BS"),
            make_channel(),
            Decimal("45.123"),
        )
        assert result.net_usd == Decimal("28.997100")
        assert result.total_in_destination == Decimal("1308.436143")

    def test_unavailable_uses_status_text(self, make_channel):
        channel = make_channel(enabled_sell=False, status_text_sell="Mantenimiento")
        with pytest.raises(Unavailable) as exc:
            compute_quote(_request(side="SELL"), channel, None)
        assert exc.value.message == "Mantenimiento"

    def test_unavailable_fallback_message(self, make_channel):
        with pytest.raises(Unavailable) as exc:
            compute_quote(_request(), make_channel(visible=False), None)
        assert exc.value.message == "Channel unavailable"

    def test_missing_channel(self):
        with pytest.raises(NotFound):
            compute_quote(_request(), None, None)

    def test_missing_rate(self, make_channel):
        with pytest.raises(NotFound):
            compute_quote(_request(destination_currency="XYZ"), make_channel(), None)

    @pytest.mark.parametrize("rate", [Decimal("0"), Decimal("-1"), Decimal("NaN"), Decimal("Infinity")])
    def test_invalid_rate(self, make_channel, rate):
        with pytest.raises(InvalidRate):
            compute_quote(_request(destination_currency="BS"), make_channel(), rate)


# ---------------------------------------------------------------------------
# QuoteRequest.build
# ---------------------------------------------------------------------------


class TestQuoteRequest:

    def test_normalizes_case(self):
        request = _request(side="buy", channel_key=" paypal ", destination_currency="bs")
        assert request.side == Side.BUY
        assert request.channel_key == "PAYPAL"
        assert request.destination_currency == "BS"

    @pytest.mark.parametrize("raw, expected", [("100.555", "100.56"), ("0.005", "0.01"), ("12", "12.00")])
    def test_amount_rounded_to_cents(self, raw, expected):
        assert _request(amount_usd=raw).amount_usd == Decimal(expected)

    @pytest.mark.parametrize("amount", [0, -5, "abc", None, "0.004", "1e40"])
    def test_rejects_bad_amount(self, amount):
        with pytest.raises(ValidationError) as exc:
            _request(amount_usd=amount)
        assert exc.value.missing == ["amountUsd"]

    def test_rejects_unknown_side(self):
        with pytest.raises(ValidationError):
            _request(side="HOLD")

    def test_rejects_negative_discount(self):
        with pytest.raises(ValidationError):
            _request(user_discount_percent=-1)


# ---------------------------------------------------------------------------
# Loyalty policy
# ---------------------------------------------------------------------------


class TestLoyalty:

    @pytest.mark.parametrize("n, expected", [
        (1, "50"), (2, "0"), (4, "0"), (5, "18"), (6, "0"), (14, "0"), (15, "10"), (40, "10"),
    ])
    def test_discount_for_order_index(self, n, expected):
        assert discount_for_order_index(n) == Decimal(expected)

    def test_fifth_order(self):
        assert loyalty_discount(Side.BUY, 4) == (Decimal("18"), "FIFTH")

    def test_sell_never_discounted(self):
        assert loyalty_discount(Side.SELL, 0) == (Decimal("0"), None)


# ---------------------------------------------------------------------------
# QuoteService
# ---------------------------------------------------------------------------


class TestQuoteService:

    @pytest.mark.asyncio
    async def test_loads_channel_and_rate(self, mock_db, mock_redis, make_channel, make_rate):
        mock_db.execute.side_effect = [
            make_result(make_channel()),
            make_result(make_rate("BS", "45")),
        ]
        result = await QuoteService(mock_db, mock_redis).quote(_request(destination_currency="BS"))
        assert result.total_in_destination == Decimal("3915")
        assert mock_db.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_usdt_skips_rate_lookup(self, mock_db, mock_redis, make_channel):
        mock_db.execute.side_effect = [make_result(make_channel())]
        await QuoteService(mock_db, mock_redis).quote(_request())
        assert mock_db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_archived_channel_not_found(self, mock_db, mock_redis, make_channel):
        from datetime import datetime, timezone

        channel = make_channel(archived_at=datetime.now(timezone.utc))
        mock_db.execute.side_effect = [make_result(channel)]
        with pytest.raises(NotFound):
            await QuoteService(mock_db, mock_redis).quote(_request())


# ---------------------------------------------------------------------------
# POST /api/v1/quote
# ---------------------------------------------------------------------------


class TestQuoteEndpoint:

    @pytest.mark.asyncio
    async def test_anonymous_quote(self, client, mock_db, make_channel):
        mock_db.execute.side_effect = [make_result(make_channel())]
        resp = await client.post("/api/v1/quote", json={
            "side": "BUY", "channelKey": "PAYPAL", "amountUsd": 100,
            "destinationCurrency": "USDT",
        })
        assert resp.status_code == 200
        body = resp.json()
        assert Decimal(body["totalPct"]) == Decimal("13")
        assert Decimal(body["netUsd"]) == Decimal("87")
        assert body["milestone"] is None

    @pytest.mark.asyncio
    async def test_signed_in_first_order_gets_discount(
        self, client, mock_db, make_user, make_channel, auth_headers,
    ):
        mock_db.execute.side_effect = [
            make_result(make_user()),       # find_user
            make_result(scalar=0),          # completed orders
            make_result(make_channel()),    # channel
        ]
        resp = await client.post("/api/v1/quote", headers=auth_headers, json={
            "side": "BUY", "channelKey": "PAYPAL", "amountUsd": 100,
            "destinationCurrency": "USDT",
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["milestone"] == "FIRST"
        assert Decimal(body["userDiscountPercent"]) == Decimal("50")
        assert Decimal(body["netUsd"]) == Decimal("100")

    @pytest.mark.asyncio
    async def test_unavailable_returns_400_with_status_text(self, client, mock_db, make_channel):
        channel = make_channel(enabled_sell=False, status_text_sell="Mantenimiento")
        mock_db.execute.side_effect = [make_result(channel)]
        resp = await client.post("/api/v1/quote", json={
            "side": "SELL", "channelKey": "PAYPAL", "amountUsd": 100,
            "destinationCurrency": "USDT",
        })
        assert resp.status_code == 400
        assert resp.json() == {"error": "Mantenimiento"}

    @pytest.mark.asyncio
    async def test_unknown_currency_returns_404(self, client, mock_db, make_channel):
        mock_db.execute.side_effect = [make_result(make_channel()), make_result(None)]
        resp = await client.post("/api/v1/quote", json={
            "side": "BUY", "channelKey": "PAYPAL", "amountUsd": 100,
            "destinationCurrency": "XYZ",
        })
        assert resp.status_code == 404
        assert "XYZ" in resp.json()["error"]

    @pytest.mark.asyncio
    async def test_missing_amount_returns_400(self, client):
        resp = await client.post("/api/v1/quote", json={
            "side": "BUY", "channelKey": "PAYPAL", "destinationCurrency": "USDT",
        })
        assert resp.status_code == 400
        assert resp.json()["missing"] == ["amountUsd"]
