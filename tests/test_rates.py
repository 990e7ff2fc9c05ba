"""Tests for the rate store — rate table writes, pricing config cache, endpoints."""

import json
from decimal import Decimal

import pytest

from app.core.errors import Internal, NotFound, ValidationError
from app.models.exchange_rate import AppConfig, ExchangeRate
from app.services.rate_service import (
    PRICING_CONFIG_KEY,
    PricingConfig,
    RateService,
    normalize_currency,
    parse_rate,
)
from tests.helpers import make_result


def _config_row(**overrides) -> AppConfig:
    values = {"fee_percent": Decimal("2.5"), "rate": Decimal("1"), "bs_rate": Decimal("45")}
    values.update(overrides)
    return AppConfig(id=1, **values)


def _published(mock_redis) -> list[tuple[str, dict]]:
    out = []
    for call in mock_redis.publish.await_args_list:
        topic, message = call.args
        out.append((topic, json.loads(message)))
    return out


def _record_order(mock_db, mock_redis) -> list[str]:
    """Names of commit / cache-drop / publish calls in the order they happened."""
    seen = []
    mock_db.commit.side_effect = lambda: seen.append("commit")
    mock_redis.delete.side_effect = lambda *args: seen.append("delete")
    mock_redis.publish.side_effect = lambda *args: seen.append("publish") or 1
    return seen


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


class TestParseRate:

    @pytest.mark.parametrize("value, expected", [
        ("45", Decimal("45")),
        (3950, Decimal("3950")),
        (0.5, Decimal("0.5")),
    ])
    def test_accepts_positive(self, value, expected):
        assert parse_rate(value) == expected

    @pytest.mark.parametrize("value", [0, -1, "abc", None, "NaN", "Infinity"])
    def test_rejects(self, value):
        with pytest.raises(ValidationError):
            parse_rate(value)

    def test_currency_is_upper_cased(self):
        assert normalize_currency(" cop ") == "COP"

    def test_blank_currency(self):
        with pytest.raises(ValidationError) as exc:
            normalize_currency("  ")
        assert exc.value.missing == ["currency"]


# ---------------------------------------------------------------------------
# Rate table
# ---------------------------------------------------------------------------


class TestRateWrites:

    @pytest.mark.asyncio
    async def test_upsert_creates_and_broadcasts(self, mock_db, mock_redis, make_rate):
        bs = make_rate("BS", "45")
        created = make_rate("COP", "3950")
        mock_db.execute.side_effect = [
            make_result(None),
            make_result(items=[bs, created]),
        ]

        row = await RateService(mock_db, mock_redis).upsert_rate("cop", "3950")

        assert row.currency == "COP"
        assert row.rate == Decimal("3950")
        mock_db.add.assert_called_once_with(row)
        [(topic, envelope)] = _published(mock_redis)
        assert topic == "exchange-rates"
        assert envelope["event"] == "rates-updated"
        assert [r["currency"] for r in envelope["data"]["rates"]] == ["BS", "COP"]

    @pytest.mark.asyncio
    async def test_upsert_overwrites_existing(self, mock_db, mock_redis, make_rate):
        bs = make_rate("BS", "45")
        mock_db.execute.side_effect = [make_result(bs), make_result(items=[bs])]

        row = await RateService(mock_db, mock_redis).upsert_rate("BS", 46.5)

        assert row is bs
        assert bs.rate == Decimal("46.5")
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_rate_writes_nothing(self, mock_db, mock_redis):
        with pytest.raises(ValidationError):
            await RateService(mock_db, mock_redis).upsert_rate("BS", 0)
        mock_db.execute.assert_not_awaited()
        mock_redis.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_unknown_currency(self, mock_db, mock_redis):
        mock_db.execute.side_effect = [make_result(None)]
        with pytest.raises(NotFound):
            await RateService(mock_db, mock_redis).update_rate("ARS", 1000)

    @pytest.mark.asyncio
    async def test_delete_broadcasts_remaining(self, mock_db, mock_redis, make_rate):
        cop = make_rate("COP", "3950")
        mock_db.execute.side_effect = [make_result(cop), make_result(items=[])]

        await RateService(mock_db, mock_redis).delete_rate("cop")

        mock_db.delete.assert_awaited_once_with(cop)
        [(_, envelope)] = _published(mock_redis)
        assert envelope["data"]["rates"] == []

    @pytest.mark.asyncio
    async def test_rate_write_commits_before_broadcast(self, mock_db, mock_redis, make_rate):
        bs = make_rate("BS", "45")
        mock_db.execute.side_effect = [make_result(bs), make_result(items=[bs])]
        seen = _record_order(mock_db, mock_redis)

        await RateService(mock_db, mock_redis).update_rate("BS", "47")

        assert seen == ["commit", "publish"]

    @pytest.mark.asyncio
    async def test_delete_commits_before_broadcast(self, mock_db, mock_redis, make_rate):
        mock_db.execute.side_effect = [make_result(make_rate("COP", "3950")), make_result(items=[])]
        seen = _record_order(mock_db, mock_redis)

        await RateService(mock_db, mock_redis).delete_rate("COP")

        assert seen == ["commit", "publish"]


# ---------------------------------------------------------------------------
# Pricing config
# ---------------------------------------------------------------------------


class TestPricingConfig:

    @pytest.mark.asyncio
    async def test_cache_hit_skips_database(self, mock_db, mock_redis):
        cached = PricingConfig(Decimal("2.5"), Decimal("1"), Decimal("45"))
        mock_redis.get.return_value = json.dumps(cached.to_dict())

        config = await RateService(mock_db, mock_redis).get_pricing_config()

        assert config == cached
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_miss_loads_and_stores(self, mock_db, mock_redis):
        mock_db.execute.side_effect = [make_result(_config_row())]

        config = await RateService(mock_db, mock_redis).get_pricing_config()

        assert config.bs_rate == Decimal("45")
        key, _ttl, payload = mock_redis.setex.await_args.args
        assert key == PRICING_CONFIG_KEY
        assert json.loads(payload)["fee_percent"] == "2.5"

    @pytest.mark.asyncio
    async def test_missing_row_is_internal(self, mock_db, mock_redis):
        mock_db.execute.side_effect = [make_result(None)]
        with pytest.raises(Internal):
            await RateService(mock_db, mock_redis).get_pricing_config()

    @pytest.mark.asyncio
    async def test_update_invalidates_and_announces(self, mock_db, mock_redis):
        row = _config_row()
        mock_db.execute.side_effect = [make_result(row)]

        config = await RateService(mock_db, mock_redis).update_pricing_config(
            fee_percent=Decimal("3"), bs_rate=Decimal("46"),
        )

        assert config == PricingConfig(Decimal("3"), Decimal("1"), Decimal("46"))
        mock_redis.delete.assert_awaited_once_with(PRICING_CONFIG_KEY)
        [(topic, envelope)] = _published(mock_redis)
        assert topic == "app-config"
        assert envelope["data"] == {"feePercent": "3", "rate": "1", "bsRate": "46"}

    @pytest.mark.asyncio
    async def test_update_commits_before_cache_drop(self, mock_db, mock_redis):
        mock_db.execute.side_effect = [make_result(_config_row())]
        seen = _record_order(mock_db, mock_redis)

        await RateService(mock_db, mock_redis).update_pricing_config(rate=Decimal("1.02"))

        assert seen == ["commit", "delete", "publish"]

    @pytest.mark.asyncio
    async def test_negative_fee_rejected(self, mock_db, mock_redis):
        mock_db.execute.side_effect = [make_result(_config_row())]
        with pytest.raises(ValidationError):
            await RateService(mock_db, mock_redis).update_pricing_config(fee_percent=Decimal("-1"))
        mock_redis.delete.assert_not_awaited()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


class TestRateEndpoints:

    @pytest.mark.asyncio
    async def test_public_config(self, client, mock_db):
        mock_db.execute.side_effect = [make_result(_config_row())]
        resp = await client.get("/api/v1/config")
        assert resp.status_code == 200
        assert resp.json() == {"rate": "1", "feePercent": "2.5"}

    @pytest.mark.asyncio
    async def test_rates_require_token(self, client):
        resp = await client.get("/api/v1/rates")
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_rates_listed(self, client, mock_db, make_rate, auth_headers):
        mock_db.execute.side_effect = [make_result(items=[make_rate("BS", "45")])]
        resp = await client.get("/api/v1/rates", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()[0]["currency"] == "BS"

    @pytest.mark.asyncio
    async def test_admin_only_writes(self, client, auth_headers):
        resp = await client.post(
            "/api/v1/admin/rates", json={"currency": "BS", "rate": 46}, headers=auth_headers,
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_upsert(self, client, mock_db, admin_headers):
        mock_db.execute.side_effect = [make_result(None), make_result(items=[])]
        resp = await client.post(
            "/api/v1/admin/rates", json={"currency": "ves", "rate": 46}, headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["currency"] == "VES"

    @pytest.mark.asyncio
    async def test_admin_delete_missing(self, client, mock_db, admin_headers):
        mock_db.execute.side_effect = [make_result(None)]
        resp = await client.delete("/api/v1/admin/rates/ARS", headers=admin_headers)
        assert resp.status_code == 404
        assert "ARS" in resp.json()["error"]
