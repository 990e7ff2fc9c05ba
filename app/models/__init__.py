"""SQLAlchemy ORM models for PayDesk Exchange."""

from app.models.user import User
from app.models.order import Order, OrderStatus, Side
from app.models.exchange_rate import AppConfig, ExchangeRate
from app.models.payment_channel import PaymentChannel
from app.models.message import Message
from app.models.verification import ReviewStatus, Verification
from app.models.trusted import AuditAction, TrustedAudit, TrustedIntake, TrustedProfile

__all__ = [
    "User",
    "Order", "OrderStatus", "Side",
    "AppConfig", "ExchangeRate",
    "PaymentChannel",
    "Message",
    "ReviewStatus", "Verification",
    "AuditAction", "TrustedAudit", "TrustedIntake", "TrustedProfile",
]
