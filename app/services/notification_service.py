"""
Notification service — email (Resend) and push (Expo) delivery.

Sends transactional notifications to customers and the admin inbox:
order status changes, verification results, trusted-program decisions.
With no API key configured, messages are logged instead of sent.
"""

import logging
import re

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

_EXPO_TOKEN_RE = re.compile(r"^(ExponentPushToken|ExpoPushToken)\[.+\]$")


def is_expo_push_token(token: str | None) -> bool:
    return bool(token) and bool(_EXPO_TOKEN_RE.match(token))


class NotificationService:
    """Delivers notifications via email (Resend REST API) and push (Expo)."""

    def __init__(self):
        self.email_url = settings.RESEND_API_URL
        self.email_key = settings.RESEND_API_KEY
        self.email_from = settings.EMAIL_FROM
        self.push_url = settings.EXPO_PUSH_URL
        self.push_token = settings.EXPO_ACCESS_TOKEN

    async def send_email(self, to: str, subject: str, html: str) -> dict:
        """Send an HTML email."""
        if not self.email_key:
            logger.info("Email skipped (no API key): to=%s subject=%r", to, subject)
            return {"to": to, "channel": "email", "status": "skipped"}

        async with httpx.AsyncClient(timeout=15) as client:
            resp = await client.post(
                self.email_url,
                json={"from": self.email_from, "to": [to], "subject": subject, "html": html},
                headers={"Authorization": f"Bearer {self.email_key}"},
            )
            resp.raise_for_status()
            data = resp.json()

        logger.info("Email sent to %s (id=%s)", to, data.get("id"))
        return {"to": to, "channel": "email", "status": "sent", "id": data.get("id")}

    async def send_push(self, token: str, title: str, body: str, data: dict | None = None) -> dict:
        """Send a push notification to one Expo device token."""
        if not settings.PUSH_ENABLED:
            return {"to": token, "channel": "push", "status": "skipped"}
        if not is_expo_push_token(token):
            logger.warning("Invalid Expo push token: %s", token)
            return {"to": token, "channel": "push", "status": "invalid_token"}

        headers = {"Accept": "application/json"}
        if self.push_token:
            headers["Authorization"] = f"Bearer {self.push_token}"

        async with httpx.AsyncClient(timeout=15) as client:
            resp = await client.post(
                self.push_url,
                json=[{"to": token, "sound": "default", "title": title, "body": body, "data": data or {}}],
                headers=headers,
            )
            resp.raise_for_status()
            tickets = resp.json().get("data", [])

        logger.info("Push sent to %s: %s", token, tickets)
        return {"to": token, "channel": "push", "status": "sent", "tickets": tickets}


notification_service = NotificationService()


# ---------------------------------------------------------------------------
# Message templates
# ---------------------------------------------------------------------------


def order_status_push(status: str) -> tuple[str, str]:
    if status == "COMPLETED":
        return "Your order was completed", "Thanks for using PayDesk. Your order was processed successfully."
    if status == "CANCELLED":
        return "Your order was cancelled", "Your order was cancelled. You can create a new one at any time."
    return "Order status updated", f"Your order status changed to {status}."


def order_completed_email(amount: str, destination: str, when: str) -> tuple[str, str]:
    subject = "Your order has been completed"
    html = (
        "<h2>Thank you for your order!</h2>"
        "<p>Your order has been completed successfully.</p>"
        f"<p><strong>Amount sent:</strong> ${amount}</p>"
        f"<p><strong>Destination:</strong> {destination}</p>"
        f"<p><em>Date:</em> {when}</p>"
        "<p>This is an automated message, please do not reply.</p>"
    )
    return subject, html


def verification_submitted_email(name: str, email: str | None, when: str) -> tuple[str, str]:
    subject = f"New verification from {name}"
    html = (
        "<h2>A new verification is waiting for review</h2>"
        f"<p><strong>Customer:</strong> {name}</p>"
        f"<p><strong>Email:</strong> {email or '-'}</p>"
        f"<p><strong>Date:</strong> {when}</p>"
    )
    return subject, html


def verification_decision_email(approved: bool) -> tuple[str, str]:
    if approved:
        return (
            "Your identity has been verified",
            "<h2>Verification approved</h2>"
            "<p>Your documents were reviewed and your account is now verified.</p>",
        )
    return (
        "Your verification was rejected",
        "<h2>Verification rejected</h2>"
        "<p>We could not verify your documents. Please submit clear photos of "
        "your ID and a selfie again from your dashboard.</p>",
    )


def verification_decision_push(approved: bool) -> tuple[str, str]:
    if approved:
        return "Verification approved", "Your account is now verified."
    return "Verification rejected", "Please submit your documents again."


def trusted_decision_email(approved: bool, limits: dict | None) -> tuple[str, str]:
    if approved:
        limits = limits or {}
        html = (
            "<h2>Welcome to the third-party payments pilot</h2>"
            "<p>Your application was <strong>approved</strong> with these limits:</p>"
            "<ul>"
            f"<li>Per transaction: USD ${limits.get('maxPerTxUsd', 'N/A')}</li>"
            f"<li>Monthly: USD ${limits.get('maxMonthlyUsd', 'N/A')}</li>"
            f"<li>Release time: {limits.get('holdHours', 'N/A')} hours</li>"
            "</ul>"
            "<p>You are liable for chargebacks raised by your clients.</p>"
        )
        return "Application approved - third-party payments pilot", html
    return (
        "Application rejected - third-party payments pilot",
        "<h2>Application rejected</h2>"
        "<p>Your application to the third-party payments pilot was rejected.</p>",
    )
