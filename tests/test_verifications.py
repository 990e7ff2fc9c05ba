"""Tests for the KYC verification workflow."""

import json
from unittest.mock import patch

import pytest

from app.core.errors import Forbidden, InvalidStatus, NotFound, ValidationError
from app.models.verification import ReviewStatus, Verification
from app.services.verification_service import VerificationService
from tests.helpers import make_result


def _events(mock_redis) -> list[tuple[str, str, dict]]:
    out = []
    for call in mock_redis.publish.await_args_list:
        topic, message = call.args
        envelope = json.loads(message)
        out.append((topic, envelope["event"], envelope["data"]))
    return out


class TestSubmit:

    @pytest.mark.asyncio
    async def test_missing_urls(self, mock_db, mock_redis, make_user):
        with pytest.raises(ValidationError) as exc:
            await VerificationService(mock_db, mock_redis).submit(make_user(), "", None)
        assert exc.value.missing == ["documentUrl", "selfieUrl"]

    @pytest.mark.asyncio
    async def test_first_submission_creates_pending(self, mock_db, mock_redis, make_user):
        user = make_user()
        mock_db.execute.side_effect = [make_result(None)]

        with patch("app.services.verification_service.dispatch") as mock_dispatch:
            verification = await VerificationService(mock_db, mock_redis).submit(
                user, "https://img/doc.jpg", "https://img/selfie.jpg",
            )

        assert verification.status == ReviewStatus.PENDING
        mock_db.add.assert_called_once_with(verification)
        assert [(t, e) for t, e, _ in _events(mock_redis)] == [
            (f"user-{user.id}", "verification-status"),
            ("admin-events", "verification-submitted"),
        ]
        # Admin inbox email
        assert mock_dispatch.call_args_list[0].args[1] == "admin@paydesk.app"

    @pytest.mark.asyncio
    async def test_resubmission_overwrites_single_row(self, mock_db, mock_redis, make_user):
        user = make_user()
        existing = Verification(
            user_id=user.id, document_url="old-doc", selfie_url="old-selfie",
            status=ReviewStatus.REJECTED, reviewer_id="admin_1",
        )
        mock_db.execute.side_effect = [make_result(existing)]

        with patch("app.services.verification_service.dispatch"):
            verification = await VerificationService(mock_db, mock_redis).submit(
                user, "new-doc", "new-selfie",
            )

        assert verification is existing
        assert verification.status == ReviewStatus.PENDING
        assert verification.document_url == "new-doc"
        assert verification.reviewer_id is None
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_pushes_admin_devices(self, mock_db, mock_redis, make_user):
        mock_db.execute.side_effect = [
            make_result(None),
            make_result(items=["ExponentPushToken[admin]"]),
        ]
        with patch("app.services.verification_service.settings") as mock_settings, \
                patch("app.services.verification_service.dispatch") as mock_dispatch:
            mock_settings.ADMIN_SUBJECTS = ["admin_1"]
            mock_settings.ADMIN_EMAIL = "ops@paydesk.app"
            await VerificationService(mock_db, mock_redis).submit(make_user(), "d", "s")

        push_calls = [c for c in mock_dispatch.call_args_list if c.args[0].name.endswith("send_push")]
        assert len(push_calls) == 1
        assert push_calls[0].args[1] == "ExponentPushToken[admin]"


class TestDecide:

    @pytest.mark.asyncio
    async def test_requires_admin(self, mock_db, mock_redis):
        with pytest.raises(Forbidden):
            await VerificationService(mock_db, mock_redis).decide("x", "APPROVED", False, "u")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("decision", ["PENDING", "MAYBE", ""])
    async def test_invalid_decision(self, mock_db, mock_redis, decision):
        with pytest.raises(InvalidStatus):
            await VerificationService(mock_db, mock_redis).decide("x", decision, True, "admin_1")

    @pytest.mark.asyncio
    async def test_not_found(self, mock_db, mock_redis):
        mock_db.execute.side_effect = [make_result(None)]
        with pytest.raises(NotFound):
            await VerificationService(mock_db, mock_redis).decide("x", "APPROVED", True, "admin_1")

    @pytest.mark.asyncio
    async def test_approve_notifies_customer(self, mock_db, mock_redis, make_user):
        user = make_user(expo_push_token="ExponentPushToken[cust]")
        verification = Verification(user_id=user.id, document_url="d", selfie_url="s")
        verification.user = user
        mock_db.execute.side_effect = [make_result(verification)]

        with patch("app.services.verification_service.dispatch") as mock_dispatch:
            result = await VerificationService(mock_db, mock_redis).decide(
                verification.id, "approved", True, "admin_1",
            )

        assert result.status == ReviewStatus.APPROVED
        assert result.reviewer_id == "admin_1"
        events = _events(mock_redis)
        assert events[0] == (f"user-{user.id}", "verification-status", {"status": "APPROVED"})
        assert events[1][:2] == ("admin-events", "verification-updated")
        recipients = [c.args[1] for c in mock_dispatch.call_args_list]
        assert recipients == ["ana@example.com", "ExponentPushToken[cust]"]


class TestVerificationEndpoints:

    @pytest.mark.asyncio
    async def test_status_none(self, client, mock_db, make_user, auth_headers):
        mock_db.execute.side_effect = [make_result(make_user()), make_result(None)]
        resp = await client.get("/api/v1/verifications/status", headers=auth_headers)
        assert resp.json() == {"status": "NONE"}

    @pytest.mark.asyncio
    async def test_submit_201(self, client, mock_db, make_user, auth_headers):
        mock_db.execute.side_effect = [make_result(make_user()), make_result(None)]
        with patch("app.services.verification_service.dispatch"):
            resp = await client.post(
                "/api/v1/verifications",
                json={"documentUrl": "https://img/doc.jpg", "selfieUrl": "https://img/selfie.jpg"},
                headers=auth_headers,
            )
        assert resp.status_code == 201
        assert resp.json()["status"] == "PENDING"
        assert resp.json()["user"]["fullName"] == "Ana Pérez"

    @pytest.mark.asyncio
    async def test_admin_decision_invalid_status(self, client, admin_headers):
        resp = await client.patch(
            "/api/v1/admin/verifications/00000000-0000-0000-0000-000000000001/status",
            json={"status": "PENDING"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid status"}
