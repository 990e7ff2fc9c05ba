"""Tests for the trusted third-party program — intake, decisions, profiles."""

import json
from decimal import Decimal
from unittest.mock import patch

import pytest

from app.core.errors import InvalidStatus, NotFound, ValidationError
from app.models.trusted import (
    AuditAction,
    ContributorType,
    TrustedAudit,
    TrustedIntake,
    TrustedProfile,
)
from app.models.verification import ReviewStatus
from app.services.trusted_service import TrustedService, limits_to_dict, parse_limits
from tests.helpers import make_result


def _intake_data(**overrides) -> dict:
    data = {
        "first_name": "Ana",
        "last_name": "Pérez",
        "email": "ana@example.com",
        "username": "anap",
        "occupation": "Diseñadora",
        "contributor_type": "freelancer",
        "country": "VE",
        "tx_per_month": 8,
        "avg_per_tx_usd": Decimal("150"),
        "monthly_total_usd": Decimal("1200"),
        "service_description": "Diseño de marca para clientes en EE.UU.",
        "accepts_chargeback_liability": True,
        "accepts_allowed_use": True,
        "accepts_data_processing": True,
    }
    data.update(overrides)
    return data


def _added(mock_db, cls) -> list:
    return [c.args[0] for c in mock_db.add.call_args_list if isinstance(c.args[0], cls)]


def _intake(user, **overrides) -> TrustedIntake:
    values = dict(
        user_id=user.id,
        first_name="Ana", last_name="Pérez", email="ana@example.com", username="anap",
        occupation="Diseñadora", contributor_type=ContributorType.FREELANCER, country="VE",
        tx_per_month=8, avg_per_tx_usd=Decimal("150"), monthly_total_usd=Decimal("1200"),
        service_description="Diseño",
    )
    values.update(overrides)
    intake = TrustedIntake(**values)
    intake.user = user
    return intake


class TestLimits:

    def test_parse_valid(self):
        parsed = parse_limits({"max_per_tx_usd": "250", "max_monthly_usd": 2000, "hold_hours": 24})
        assert parsed == {
            "max_per_tx_usd": Decimal("250"),
            "max_monthly_usd": Decimal("2000"),
            "hold_hours": 24,
        }

    def test_parse_none(self):
        assert parse_limits(None) is None

    @pytest.mark.parametrize("limits", [
        {"max_per_tx_usd": 0, "max_monthly_usd": 100, "hold_hours": 0},
        {"max_per_tx_usd": 10, "max_monthly_usd": -1, "hold_hours": 0},
        {"max_per_tx_usd": 10, "max_monthly_usd": 100, "hold_hours": -1},
        {"max_per_tx_usd": 10},
    ])
    def test_parse_invalid(self, limits):
        with pytest.raises(ValidationError):
            parse_limits(limits)

    def test_wire_shape(self):
        wire = limits_to_dict({
            "max_per_tx_usd": Decimal("200"), "max_monthly_usd": Decimal("1000"), "hold_hours": 48,
        })
        assert wire == {"maxPerTxUsd": "200", "maxMonthlyUsd": "1000", "holdHours": 48}


class TestSubmitIntake:

    @pytest.mark.asyncio
    async def test_stores_intake_and_audit(self, mock_db, mock_redis, make_user):
        user = make_user()
        intake = await TrustedService(mock_db, mock_redis).submit_intake(
            user, _intake_data(), ip="10.0.0.1", user_agent="okhttp/4",
        )
        assert intake.contributor_type == ContributorType.FREELANCER
        assert intake.status == ReviewStatus.PENDING
        assert intake.ip == "10.0.0.1"

        [audit] = _added(mock_db, TrustedAudit)
        assert audit.action == AuditAction.INTAKE_SUBMITTED
        assert audit.intake_id == intake.id
        json.dumps(audit.details)  # stored as JSONB

        topic, message = mock_redis.publish.await_args.args
        assert topic == "admin-events"
        assert json.loads(message)["event"] == "intake-submitted"

    @pytest.mark.asyncio
    async def test_missing_fields_in_camel_case(self, mock_db, mock_redis, make_user):
        with pytest.raises(ValidationError) as exc:
            await TrustedService(mock_db, mock_redis).submit_intake(
                make_user(), _intake_data(first_name="", tx_per_month=None),
            )
        assert exc.value.missing == ["firstName", "txPerMonth"]

    @pytest.mark.asyncio
    async def test_all_declarations_required(self, mock_db, mock_redis, make_user):
        with pytest.raises(ValidationError, match="declarations"):
            await TrustedService(mock_db, mock_redis).submit_intake(
                make_user(), _intake_data(accepts_data_processing=False),
            )
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_contributor_type(self, mock_db, mock_redis, make_user):
        with pytest.raises(ValidationError):
            await TrustedService(mock_db, mock_redis).submit_intake(
                make_user(), _intake_data(contributor_type="AGENCY"),
            )


class TestDecideIntake:

    @pytest.mark.asyncio
    async def test_invalid_decision(self, mock_db, mock_redis):
        with pytest.raises(InvalidStatus):
            await TrustedService(mock_db, mock_redis).decide_intake("x", "LATER", "admin_1")

    @pytest.mark.asyncio
    async def test_unknown_intake(self, mock_db, mock_redis):
        mock_db.execute.side_effect = [make_result(None)]
        with pytest.raises(NotFound):
            await TrustedService(mock_db, mock_redis).decide_intake("x", "REJECTED", "admin_1")

    @pytest.mark.asyncio
    async def test_approve_with_limits_creates_profile(self, mock_db, mock_redis, make_user):
        user = make_user(expo_push_token="ExponentPushToken[cust]")
        intake = _intake(user)
        mock_db.execute.side_effect = [make_result(intake), make_result(None)]

        with patch("app.services.trusted_service.dispatch") as mock_dispatch:
            await TrustedService(mock_db, mock_redis).decide_intake(
                intake.id, "approved", "admin_1",
                limits={"max_per_tx_usd": 300, "max_monthly_usd": 1500, "hold_hours": 24},
                notes="ok",
            )

        assert intake.status == ReviewStatus.APPROVED
        assert intake.reviewer_id == "admin_1"
        assert intake.decision_at is not None

        [profile] = _added(mock_db, TrustedProfile)
        assert profile.enabled is True
        assert profile.max_per_tx_usd == Decimal("300")
        assert profile.hold_hours == 24

        [audit] = _added(mock_db, TrustedAudit)
        assert audit.action == AuditAction.INTAKE_APPROVED
        assert audit.details["limits"]["maxMonthlyUsd"] == "1500"

        topic, message = mock_redis.publish.await_args.args
        assert topic == f"user-{user.id}"
        data = json.loads(message)["data"]
        assert data["status"] == "APPROVED"
        assert data["limits"]["holdHours"] == 24

        assert [c.args[1] for c in mock_dispatch.call_args_list] == [
            "ana@example.com", "ExponentPushToken[cust]",
        ]

    @pytest.mark.asyncio
    async def test_reject_leaves_profile_alone(self, mock_db, mock_redis, make_user):
        user = make_user()
        intake = _intake(user)
        mock_db.execute.side_effect = [make_result(intake)]

        with patch("app.services.trusted_service.dispatch"):
            await TrustedService(mock_db, mock_redis).decide_intake(
                intake.id, "REJECTED", "admin_1",
                limits={"max_per_tx_usd": 300, "max_monthly_usd": 1500, "hold_hours": 24},
            )

        assert intake.status == ReviewStatus.REJECTED
        assert _added(mock_db, TrustedProfile) == []
        [audit] = _added(mock_db, TrustedAudit)
        assert audit.action == AuditAction.INTAKE_REJECTED


class TestUpdateProfile:

    @pytest.mark.asyncio
    async def test_creates_with_defaults(self, mock_db, mock_redis, make_user):
        user = make_user()
        mock_db.execute.side_effect = [make_result(user.id), make_result(None)]

        profile = await TrustedService(mock_db, mock_redis).update_profile(
            user.id, "admin_1", notes="manual",
        )

        assert profile.max_per_tx_usd == Decimal("200")
        assert profile.max_monthly_usd == Decimal("1000")
        assert profile.hold_hours == 48
        [audit] = _added(mock_db, TrustedAudit)
        assert audit.action == AuditAction.PROFILE_UPDATED

    @pytest.mark.asyncio
    async def test_updates_existing(self, mock_db, mock_redis, make_user):
        user = make_user()
        existing = TrustedProfile(user_id=user.id)
        mock_db.execute.side_effect = [make_result(user.id), make_result(existing)]

        profile = await TrustedService(mock_db, mock_redis).update_profile(
            user.id, "admin_1", max_monthly_usd="5000", enabled=False,
        )

        assert profile is existing
        assert profile.max_monthly_usd == Decimal("5000")
        assert profile.enabled is False

    @pytest.mark.asyncio
    async def test_unknown_user(self, mock_db, mock_redis):
        mock_db.execute.side_effect = [make_result(None)]
        with pytest.raises(NotFound):
            await TrustedService(mock_db, mock_redis).update_profile("x", "admin_1", hold_hours=1)

    @pytest.mark.asyncio
    async def test_rejects_non_positive_limit(self, mock_db, mock_redis):
        with pytest.raises(ValidationError):
            await TrustedService(mock_db, mock_redis).update_profile("x", "admin_1", max_per_tx_usd=0)


class TestTrustedEndpoints:

    @pytest.mark.asyncio
    async def test_profile_null_when_absent(self, client, mock_db, make_user, auth_headers):
        mock_db.execute.side_effect = [make_result(make_user()), make_result(None)]
        resp = await client.get("/api/v1/trusted-profile", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "profile": None}

    @pytest.mark.asyncio
    async def test_submit_intake_201(self, client, mock_db, make_user, auth_headers):
        mock_db.execute.side_effect = [make_result(make_user())]
        body = {
            "firstName": "Ana", "lastName": "Pérez", "email": "ana@example.com",
            "username": "anap", "occupation": "Diseñadora", "contributorType": "COMPANY",
            "companyName": "Estudio AP", "country": "VE", "txPerMonth": 5,
            "avgPerTxUsd": 200, "monthlyTotalUsd": 1000,
            "serviceDescription": "Diseño", "acceptsChargebackLiability": True,
            "acceptsAllowedUse": True, "acceptsDataProcessing": True,
        }
        resp = await client.post(
            "/api/v1/trusted-intake", json=body,
            headers={**auth_headers, "X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
        )
        assert resp.status_code == 201
        assert resp.json()["ok"] is True
        intake = _added(mock_db, TrustedIntake)[0]
        assert intake.ip == "203.0.113.9"
