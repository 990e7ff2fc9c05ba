"""Tests for email/push delivery, message templates and task dispatch."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from app.config import settings
from app.services.notification_service import (
    NotificationService,
    is_expo_push_token,
    order_status_push,
    trusted_decision_email,
)
from app.tasks.notification_tasks import dispatch

TOKEN = "ExponentPushToken[abc123]"


def _client_factory(handler):
    real_client = httpx.AsyncClient

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    return factory


class TestPush:

    def test_token_format(self):
        assert is_expo_push_token(TOKEN) is True
        assert is_expo_push_token("ExpoPushToken[x]") is True
        assert is_expo_push_token("fcm:abc") is False
        assert is_expo_push_token(None) is False

    @pytest.mark.asyncio
    async def test_disabled(self):
        with patch.object(settings, "PUSH_ENABLED", False):
            result = await NotificationService().send_push(TOKEN, "t", "b")
        assert result["status"] == "skipped"

    @pytest.mark.asyncio
    async def test_invalid_token_not_sent(self):
        handler = MagicMock()
        with patch.object(settings, "PUSH_ENABLED", True), \
                patch("app.services.notification_service.httpx.AsyncClient", _client_factory(handler)):
            result = await NotificationService().send_push("bogus", "t", "b")
        assert result["status"] == "invalid_token"
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_sends_to_expo(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": [{"status": "ok"}]})

        with patch.object(settings, "PUSH_ENABLED", True), \
                patch("app.services.notification_service.httpx.AsyncClient", _client_factory(handler)):
            result = await NotificationService().send_push(TOKEN, "Hola", "Tu orden", {"orderId": "1"})

        assert result["status"] == "sent"
        [message] = seen["body"]
        assert message["to"] == TOKEN
        assert message["data"] == {"orderId": "1"}


class TestEmail:

    @pytest.mark.asyncio
    async def test_logged_without_key(self):
        with patch.object(settings, "RESEND_API_KEY", ""):
            result = await NotificationService().send_email("ana@example.com", "s", "<p>x</p>")
        assert result["status"] == "skipped"

    @pytest.mark.asyncio
    async def test_sends_with_key(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer re_test"
            assert json.loads(request.content)["to"] == ["ana@example.com"]
            return httpx.Response(200, json={"id": "em_1"})

        with patch.object(settings, "RESEND_API_KEY", "re_test"), \
                patch("app.services.notification_service.httpx.AsyncClient", _client_factory(handler)):
            result = await NotificationService().send_email("ana@example.com", "s", "<p>x</p>")
        assert result == {"to": "ana@example.com", "channel": "email", "status": "sent", "id": "em_1"}

    @pytest.mark.asyncio
    async def test_provider_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"message": "boom"})

        with patch.object(settings, "RESEND_API_KEY", "re_test"), \
                patch("app.services.notification_service.httpx.AsyncClient", _client_factory(handler)):
            with pytest.raises(httpx.HTTPStatusError):
                await NotificationService().send_email("ana@example.com", "s", "<p>x</p>")


class TestTemplates:

    def test_order_status_push(self):
        assert order_status_push("COMPLETED")[0] == "Your order was completed"
        assert "PENDING" in order_status_push("PENDING")[1]

    def test_trusted_email_lists_limits(self):
        subject, html = trusted_decision_email(
            True, {"maxPerTxUsd": "300", "maxMonthlyUsd": "1500", "holdHours": 24},
        )
        assert "approved" in subject.lower()
        assert "$300" in html and "24 hours" in html


class TestDispatch:

    def test_queues_task(self):
        task = MagicMock()
        assert dispatch(task, "a", "b") is True
        task.delay.assert_called_once_with("a", "b")

    def test_broker_failure_swallowed(self):
        task = MagicMock()
        task.delay.side_effect = ConnectionError("broker down")
        assert dispatch(task, "a") is False
