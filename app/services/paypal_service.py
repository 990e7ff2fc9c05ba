"""
PayPal invoicing and reconciliation.

Architecture:
  - PayPalProvider (protocol) defines the interface
  - MockPayPalProvider returns deterministic data for development
  - PayPalAPIProvider calls the PayPal REST API (OAuth client credentials)
  - PAYPAL_MOCK=true (default) selects the mock provider

Two PayPal business accounts bill customers: amounts under
PAYPAL_SECONDARY_THRESHOLD_USD go out from the secondary account, the
rest from the main one. The account is derived from the order amount,
so the lookup for reconciliation uses the same credentials as the issue.

PayPal reports the fee as a negative value, so ``net = gross + fee``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Protocol
from uuid import uuid4

import httpx

from app.config import settings
from app.core.errors import Internal, NotFound, ValidationError

logger = logging.getLogger(__name__)

MAIN_ACCOUNT = "MAIN"
SECONDARY_ACCOUNT = "SECONDARY"


# ---------------------------------------------------------------------------
# Accounts and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PayPalAccount:
    key: str
    invoicer_name: str
    item_name: str
    client_id: str
    client_secret: str


def account_for_amount(amount) -> PayPalAccount:
    """Pick the billing account for an invoice of *amount* USD."""
    threshold = Decimal(str(settings.PAYPAL_SECONDARY_THRESHOLD_USD))
    if Decimal(str(amount)) < threshold:
        return PayPalAccount(
            key=SECONDARY_ACCOUNT,
            invoicer_name=settings.PAYPAL_SECONDARY_INVOICER_NAME,
            item_name=settings.PAYPAL_SECONDARY_ITEM_NAME,
            client_id=settings.PAYPAL_SECONDARY_CLIENT_ID,
            client_secret=settings.PAYPAL_SECONDARY_CLIENT_SECRET,
        )
    return PayPalAccount(
        key=MAIN_ACCOUNT,
        invoicer_name=settings.PAYPAL_INVOICER_NAME,
        item_name=settings.PAYPAL_ITEM_NAME,
        client_id=settings.PAYPAL_CLIENT_ID,
        client_secret=settings.PAYPAL_CLIENT_SECRET,
    )


@dataclass(frozen=True)
class InvoicePayment:
    transaction_id: str
    gross_amount: Decimal
    fee_amount: Decimal

    @property
    def net_amount(self) -> Decimal:
        return self.gross_amount + self.fee_amount


def invoice_body(account: PayPalAccount, email: str, amount) -> dict:
    """Create-invoice payload: one line item for the full amount."""
    value = f"{Decimal(str(amount)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}"
    return {
        "detail": {
            "currency_code": "USD",
            "note": account.item_name,
            "terms_and_conditions": settings.PAYPAL_INVOICE_TERMS,
            "reference": account.key,
        },
        "invoicer": {"name": {"given_name": account.invoicer_name}},
        "primary_recipients": [{"billing_info": {"email_address": email}}],
        "items": [
            {
                "name": account.item_name,
                "quantity": "1",
                "unit_amount": {"currency_code": "USD", "value": value},
            }
        ],
    }


def _invoice_id(created: dict) -> str | None:
    if created.get("id"):
        return created["id"]
    href = created.get("href")
    if not href:
        href = next(
            (link.get("href") for link in created.get("links") or [] if link.get("rel") == "self"),
            None,
        )
    return href.rstrip("/").rsplit("/", 1)[-1] if href else None


# ---------------------------------------------------------------------------
# Provider protocol
# ---------------------------------------------------------------------------


class PayPalProvider(Protocol):
    async def issue_invoice(self, account: PayPalAccount, email: str, amount) -> str: ...

    async def get_invoice_payment(self, account: PayPalAccount, invoice_id: str) -> InvoicePayment: ...


class MockPayPalProvider:
    """Invoices get a random id; every invoice was paid 100.00 with a 5.40 fee."""

    async def issue_invoice(self, account: PayPalAccount, email: str, amount) -> str:
        invoice_id = f"INV2-MOCK-{uuid4().hex[:12].upper()}"
        logger.info("MockPayPal: %s invoiced %s for %s (%s)", account.key, email, amount, invoice_id)
        return invoice_id

    async def get_invoice_payment(self, account: PayPalAccount, invoice_id: str) -> InvoicePayment:
        logger.info("MockPayPal: invoice %s on %s", invoice_id, account.key)
        return InvoicePayment(
            transaction_id=f"MOCK-{invoice_id}",
            gross_amount=Decimal("100.00"),
            fee_amount=Decimal("-5.40"),
        )


class PayPalAPIProvider:
    """PayPal REST: create and send invoices, then follow the payment to its transaction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    async def _access_token(self, client: httpx.AsyncClient, account: PayPalAccount) -> str:
        if not account.client_id or not account.client_secret:
            logger.error("PayPal credentials missing for %s account", account.key)
            raise Internal(f"PayPal credentials missing for {account.key}")
        resp = await client.post(
            f"{self.base_url}/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(account.client_id, account.client_secret),
        )
        resp.raise_for_status()
        return resp.json()["access_token"]

    async def issue_invoice(self, account: PayPalAccount, email: str, amount) -> str:
        """Create the invoice and send it so it does not stay in draft."""
        async with httpx.AsyncClient(timeout=15) as client:
            try:
                token = await self._access_token(client, account)
                headers = {"Authorization": f"Bearer {token}"}

                resp = await client.post(
                    f"{self.base_url}/v2/invoicing/invoices",
                    json=invoice_body(account, email, amount),
                    headers=headers,
                )
                resp.raise_for_status()
                invoice_id = _invoice_id(resp.json())
                if not invoice_id:
                    raise ValidationError("PayPal did not return an invoice id")

                resp = await client.post(
                    f"{self.base_url}/v2/invoicing/invoices/{invoice_id}/send",
                    json={},
                    headers=headers,
                )
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                logger.error(
                    "PayPal invoice on %s failed: %s %s",
                    account.key, exc.response.status_code, exc.response.text,
                )
                raise ValidationError("Could not issue the PayPal invoice")

        logger.info("PayPal invoice %s sent from %s", invoice_id, account.key)
        return invoice_id

    async def get_invoice_payment(self, account: PayPalAccount, invoice_id: str) -> InvoicePayment:
        async with httpx.AsyncClient(timeout=15) as client:
            token = await self._access_token(client, account)
            headers = {"Authorization": f"Bearer {token}"}

            resp = await client.get(
                f"{self.base_url}/v2/invoicing/invoices/{invoice_id}", headers=headers,
            )
            resp.raise_for_status()
            invoice = resp.json()

            payments = invoice.get("payments") or {}
            received = payments.get("payments_received") if isinstance(payments, dict) else payments
            transaction_id = (received or [{}])[0].get("transaction_id")
            if not transaction_id:
                raise NotFound("No transaction found for this invoice")

            resp = await client.get(
                f"{self.base_url}/v1/reporting/transactions",
                params={"transaction_id": transaction_id},
                headers=headers,
            )
            resp.raise_for_status()
            details = resp.json().get("transaction_details") or []

        if not details:
            raise NotFound("No PayPal transaction for this invoice")

        info = details[0].get("transaction_info") or {}
        gross = (info.get("transaction_amount") or {}).get("value")
        if gross is None:
            raise ValidationError("PayPal transaction has no amount")
        fee = (info.get("fee_amount") or {}).get("value") or "0"

        return InvoicePayment(
            transaction_id=transaction_id,
            gross_amount=Decimal(str(gross)),
            fee_amount=Decimal(str(fee)),
        )


# Module-level provider override (for tests)
_provider: PayPalProvider | None = None


def get_paypal_provider() -> PayPalProvider:
    """Return the configured PayPal provider."""
    if _provider is not None:
        return _provider
    if settings.PAYPAL_MOCK:
        return MockPayPalProvider()
    return PayPalAPIProvider(settings.PAYPAL_BASE_URL)


def set_paypal_provider(provider: PayPalProvider | None) -> None:
    """Override the PayPal provider (for testing)."""
    global _provider
    _provider = provider
