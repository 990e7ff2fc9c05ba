"""
Order lifecycle — creation with a frozen quote snapshot, admin status
changes, reconciliation and back-office stats.

Create flow:
  1. Return the existing order when the Idempotency-Key was seen before
  2. Validate the request and the recipient details for the destination
  3. Apply the loyalty discount from the caller's completed-order count
  4. Re-derive the quote server-side and persist it as the snapshot
  5. Commit, then announce ``order-created`` on the admin topic

Rates, channel and snapshot are read and written inside the request's
single database transaction.
"""

import logging
from dataclasses import replace
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.errors import Conflict, Forbidden, InvalidStatus, NotFound, ValidationError
from app.core.security import Actor
from app.models.order import Order, OrderStatus, Side
from app.models.trusted import TrustedIntake
from app.models.user import User
from app.models.verification import ReviewStatus, Verification
from app.services.notification_service import order_completed_email, order_status_push
from app.services.paypal_service import account_for_amount, get_paypal_provider
from app.services.quote_service import QuoteRequest, QuoteService, loyalty_discount
from app.services.realtime_service import (
    ADMIN_TOPIC,
    EVENT_ORDER_CREATED,
    EVENT_ORDER_UPDATED,
    RealtimePublisher,
    user_topic,
)
from app.tasks.notification_tasks import dispatch, send_email, send_push

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Recipient details
# ---------------------------------------------------------------------------

USDT_NETWORKS = ("TRC20", "BEP20")

# Extra fields each fiat currency needs on top of bankName
FIAT_REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "BS": ("phoneNumber", "idNumber"),
    "COP": ("accountNumber",),
}

FIAT_OPTIONAL_FIELDS = ("holderName", "accountNumber", "phoneNumber", "idNumber", "accountType")


def _clean(value) -> str:
    return str(value).strip() if value is not None else ""


def parse_destination(destination: str | None) -> tuple[str, str | None]:
    """Split ``"USDT - TRC20"`` into ``("USDT", "TRC20")``; ``"BS"`` gives ``("BS", None)``."""
    text = _clean(destination).upper()
    if not text:
        return "", None
    currency, _, network = text.partition("-")
    return currency.strip(), network.strip() or None


def validate_recipient(
    destination_currency: str, details: dict | None, network_hint: str | None = None,
) -> dict:
    """
    Return the normalized tagged recipient for *destination_currency*.

    USDT -> {"type": "USDT", "wallet", "network"}
    else -> {"type": "FIAT", "currency", "bankName", ...}

    Raises ValidationError naming every missing field.
    """
    details = details or {}

    if destination_currency == "USDT":
        wallet = _clean(details.get("wallet"))
        network = _clean(details.get("network") or network_hint).upper()
        missing = []
        if not wallet:
            missing.append("wallet")
        if not network:
            missing.append("network")
        if missing:
            raise ValidationError(f"Missing fields: {', '.join(missing)}", missing=missing)
        if network not in USDT_NETWORKS:
            raise ValidationError(f"Unsupported network: {network}", missing=["network"])
        return {"type": "USDT", "wallet": wallet, "network": network}

    required = ("bankName",) + FIAT_REQUIRED_FIELDS.get(destination_currency, ())
    missing = [name for name in required if not _clean(details.get(name))]
    if missing:
        raise ValidationError(f"Missing fields: {', '.join(missing)}", missing=missing)

    recipient = {
        "type": "FIAT",
        "currency": destination_currency,
        "bankName": _clean(details["bankName"]),
    }
    for name in FIAT_OPTIONAL_FIELDS:
        value = _clean(details.get(name))
        if value:
            recipient[name] = value
    return recipient


def destination_label(destination_currency: str, recipient: dict) -> str:
    if recipient["type"] == "USDT":
        return f"USDT - {recipient['network']}"
    return destination_currency


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


def order_to_dict(order: Order) -> dict:
    """Realtime payload for an order (camelCase, JSON-safe via the encoder)."""
    return {
        "id": order.id,
        "userId": order.user_id,
        "platform": order.platform,
        "side": order.side,
        "destination": order.destination,
        "destinationCurrency": order.destination_currency,
        "amount": order.amount,
        "finalUsd": order.final_usd,
        "finalUsdt": order.final_usdt,
        "totalPct": order.total_pct,
        "exchangeRateUsed": order.exchange_rate_used,
        "status": order.status,
        "paypalInvoiceId": order.paypal_invoice_id,
        "createdAt": order.created_at,
        "updatedAt": order.updated_at,
    }


# ---------------------------------------------------------------------------
# OrderService
# ---------------------------------------------------------------------------


class OrderService:
    """Creates, reads and transitions orders."""

    def __init__(self, db: AsyncSession, redis):
        self.db = db
        self.redis = redis
        self.quotes = QuoteService(db, redis)
        self.publisher = RealtimePublisher(redis)

    # --- Creation ---

    async def create_order(
        self,
        user: User,
        *,
        platform: str | None,
        destination: str | None,
        amount,
        paypal_email: str | None,
        recipient_details: dict | None,
        side: str | None = Side.BUY.value,
        idempotency_key: str | None = None,
    ) -> tuple[Order, bool]:
        """
        Create an order for *user*. Returns ``(order, created)``.

        ``created`` is False when *idempotency_key* matched an earlier order.
        """
        if idempotency_key:
            existing = await self._find_by_idempotency_key(user.id, idempotency_key)
            if existing is not None:
                logger.info("Order %s replayed for key %s", existing.id, idempotency_key)
                return existing, False

        missing = [
            name for name, value in (
                ("platform", platform),
                ("destination", destination),
                ("amount", amount),
                ("paypalEmail", paypal_email),
                ("recipientDetails", recipient_details),
            )
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            raise ValidationError(f"Missing fields: {', '.join(missing)}", missing=missing)

        email = paypal_email.strip()
        if "@" not in email:
            raise ValidationError("Invalid paypalEmail", missing=["paypalEmail"])

        currency, network_hint = parse_destination(destination)
        request = QuoteRequest.build(side, platform, amount, currency)
        recipient = validate_recipient(request.destination_currency, recipient_details, network_hint)

        completed = await self.quotes.completed_order_count(user.id)
        discount, milestone = loyalty_discount(request.side, completed)
        request = replace(request, user_discount_percent=discount)

        quote = await self.quotes.quote(request)

        order = Order(
            user_id=user.id,
            platform=quote.channel_key,
            side=quote.side,
            destination=destination_label(quote.destination_currency, recipient),
            destination_currency=quote.destination_currency,
            amount=quote.amount_usd,
            paypal_email=email,
            recipient_details=recipient,
            commission_percent=quote.commission_percent,
            base_fee_percent=quote.base_fee_percent,
            discount_percent=quote.user_discount_percent,
            total_pct=quote.total_pct,
            exchange_rate_used=quote.exchange_rate_used,
            final_usd=quote.net_usd,
            final_usdt=quote.total_in_destination,
            idempotency_key=idempotency_key,
        )
        self.db.add(order)
        await self.db.flush()
        await self.db.commit()

        logger.info(
            "Order %s created: user=%s %s %s -> %s (total_pct=%s, milestone=%s)",
            order.id, user.id, quote.amount_usd, quote.channel_key,
            order.destination, quote.total_pct, milestone,
        )

        payload = order_to_dict(order)
        payload["user"] = {"fullName": user.full_name, "email": user.email}
        await self.publisher.publish(ADMIN_TOPIC, EVENT_ORDER_CREATED, payload)
        return order, True

    async def _find_by_idempotency_key(self, user_id, key: str) -> Order | None:
        result = await self.db.execute(
            select(Order).where(Order.user_id == user_id, Order.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    # --- Reads ---

    async def get_order(self, order_id, with_user: bool = False) -> Order | None:
        stmt = select(Order).where(Order.id == order_id)
        if with_user:
            stmt = stmt.options(selectinload(Order.user))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_order_for(self, actor: Actor, order_id) -> Order:
        """The order, if *actor* owns it or is admin."""
        order = await self.get_order(order_id)
        if order is None:
            raise NotFound("Order not found")
        if not actor.can_access(order.user_id):
            raise Forbidden("Not allowed to access this order")
        return order

    async def list_orders(
        self,
        user_id=None,
        status: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Order], int]:
        """Newest first. ``user_id=None`` lists every customer's orders."""
        base = select(Order)
        count_q = select(func.count(Order.id))
        if user_id is not None:
            base = base.where(Order.user_id == user_id)
            count_q = count_q.where(Order.user_id == user_id)
        if status:
            try:
                parsed = Order.parse_status(status)
            except ValueError:
                raise InvalidStatus("Invalid status")
            base = base.where(Order.status == parsed)
            count_q = count_q.where(Order.status == parsed)

        total = (await self.db.execute(count_q)).scalar_one()

        offset = (page - 1) * page_size
        result = await self.db.execute(
            base.order_by(Order.created_at.desc()).offset(offset).limit(page_size)
        )
        return list(result.scalars().all()), total

    async def count_for_user(self, user_id) -> dict:
        total = (await self.db.execute(
            select(func.count(Order.id)).where(Order.user_id == user_id)
        )).scalar_one()
        completed = await self.quotes.completed_order_count(user_id)
        return {"count": int(total or 0), "completed": completed}

    # --- Status (admin) ---

    async def set_order_status(self, order_id, new_status: str, actor_is_admin: bool) -> Order:
        """
        Move an order to *new_status*. Any status may follow any other.

        Setting the current status again is a no-op without side effects.
        """
        if not actor_is_admin:
            raise Forbidden("Only an admin can change order status")

        try:
            status = Order.parse_status(new_status)
        except ValueError:
            raise InvalidStatus("Invalid status")

        order = await self.get_order(order_id, with_user=True)
        if order is None:
            raise NotFound("Order not found")

        previous = order.status
        if not order.set_status(status):
            return order

        await self.db.flush()
        await self.db.commit()
        logger.info("Order %s status %s -> %s", order.id, previous.value, status.value)

        payload = order_to_dict(order)
        await self.publisher.publish(ADMIN_TOPIC, EVENT_ORDER_UPDATED, payload)
        await self.publisher.publish(user_topic(order.user_id), EVENT_ORDER_UPDATED, payload)

        owner = order.user
        if owner is not None and owner.expo_push_token:
            title, body = order_status_push(status.value)
            dispatch(send_push, owner.expo_push_token, title, body, {"orderId": str(order.id)})

        if status == OrderStatus.COMPLETED and owner is not None and owner.email:
            subject, html = order_completed_email(
                f"{order.amount:.2f}",
                order.destination,
                order.updated_at.strftime("%Y-%m-%d %H:%M UTC"),
            )
            dispatch(send_email, owner.email, subject, html)

        return order

    # --- Reconciliation ---

    async def issue_invoice(self, order_id) -> dict:
        """Bill the order's PayPal email for its amount and store the invoice id."""
        order = await self.get_order(order_id)
        if order is None:
            raise NotFound("Order not found")
        if order.paypal_invoice_id:
            raise Conflict("Order already has a PayPal invoice")
        if order.status == OrderStatus.CANCELLED:
            raise InvalidStatus("Cannot invoice a cancelled order")

        account = account_for_amount(order.amount)
        invoice_id = await get_paypal_provider().issue_invoice(
            account, order.paypal_email, order.amount,
        )

        order.paypal_invoice_id = invoice_id
        await self.db.flush()
        await self.db.commit()
        logger.info("Order %s invoiced as %s from %s", order.id, invoice_id, account.key)

        payload = order_to_dict(order)
        await self.publisher.publish(ADMIN_TOPIC, EVENT_ORDER_UPDATED, payload)
        await self.publisher.publish(user_topic(order.user_id), EVENT_ORDER_UPDATED, payload)

        return {
            "order_id": order.id,
            "paypal_invoice_id": invoice_id,
            "account": account.key,
        }

    async def calculate_profit(self, order_id) -> dict:
        """Fetch the PayPal payment for the order's invoice and store realProfit."""
        order = await self.get_order(order_id)
        if order is None:
            raise NotFound("Order not found")
        if not order.paypal_invoice_id:
            raise ValidationError("Order has no PayPal invoice id", missing=["paypalInvoiceId"])

        payment = await get_paypal_provider().get_invoice_payment(
            account_for_amount(order.amount), order.paypal_invoice_id,
        )
        net_amount = payment.net_amount
        real_profit = (net_amount - Decimal(order.final_usd)).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )

        order.real_profit = real_profit
        await self.db.flush()
        logger.info("Order %s real profit %s", order.id, real_profit)

        return {
            "order_id": order.id,
            "paypal_invoice_id": order.paypal_invoice_id,
            "transaction_id": payment.transaction_id,
            "gross_amount": payment.gross_amount,
            "fee": payment.fee_amount,
            "net_amount": net_amount,
            "final_usd": order.final_usd,
            "real_profit": real_profit,
        }

    # --- Back-office stats ---

    async def stats(self) -> dict:
        by_status = {s.value: 0 for s in OrderStatus}
        result = await self.db.execute(
            select(Order.status, func.count(Order.id)).group_by(Order.status)
        )
        for status, count in result.all():
            key = status.value if hasattr(status, "value") else str(status)
            by_status[key] = count

        sums = (await self.db.execute(
            select(
                func.coalesce(func.sum(Order.amount), 0),
                func.coalesce(func.sum(Order.final_usd), 0),
                func.coalesce(func.sum(Order.real_profit), 0),
            ).where(Order.status == OrderStatus.COMPLETED)
        )).one()

        pending_verifications = (await self.db.execute(
            select(func.count(Verification.id)).where(Verification.status == ReviewStatus.PENDING)
        )).scalar_one()
        pending_intakes = (await self.db.execute(
            select(func.count(TrustedIntake.id)).where(TrustedIntake.status == ReviewStatus.PENDING)
        )).scalar_one()

        return {
            "orders": by_status,
            "completed_amount_usd": Decimal(sums[0]),
            "completed_final_usd": Decimal(sums[1]),
            "completed_real_profit": Decimal(sums[2]),
            "pending_verifications": int(pending_verifications or 0),
            "pending_trusted_intakes": int(pending_intakes or 0),
        }
