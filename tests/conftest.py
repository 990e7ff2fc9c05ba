"""
Shared test fixtures for PayDesk Exchange.

Provides the async test client, database session and Redis doubles,
model factories, and RSA key fixtures for bearer tokens.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient

from app.core import security
from app.database import get_db
from app.models.exchange_rate import ExchangeRate
from app.models.order import Order, Side
from app.models.payment_channel import PaymentChannel
from app.models.user import User
from app.redis_client import get_redis
from tests.helpers import make_result


# --- RSA Key Fixtures ---


@pytest.fixture(scope="session")
def test_rsa_keys():
    """Generate a temporary RSA keypair for test JWT signing."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )

    return {"private_key": private_pem, "public_key": public_pem}


@pytest.fixture(autouse=True)
def security_with_keys(test_rsa_keys):
    """Configure token verification to use test RSA keys for every test."""
    security.configure_keys(
        private_key=test_rsa_keys["private_key"],
        public_key=test_rsa_keys["public_key"],
        algorithm="RS256",
    )


# --- Mock Redis ---


@pytest.fixture
def mock_redis():
    """AsyncMock Redis client with the methods the services use."""
    redis = AsyncMock()
    redis.setex = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.delete = AsyncMock()
    redis.publish = AsyncMock(return_value=1)
    return redis


# --- Mock Database Session ---


@pytest.fixture
def mock_db():
    """AsyncMock database session. Queue results with ``db.execute.side_effect``."""
    db = AsyncMock()
    db.execute = AsyncMock(return_value=make_result())
    db.flush = AsyncMock()
    db.add = MagicMock()
    db.delete = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


# --- Model factories ---


def _make_user(**overrides) -> User:
    defaults = {
        "clerk_id": "user_2abc",
        "email": "ana@example.com",
        "full_name": "Ana Pérez",
    }
    defaults.update(overrides)
    return User(**defaults)


def _make_channel(**overrides) -> PaymentChannel:
    defaults = {
        "key": "PAYPAL",
        "label": "PayPal",
        "commission_buy_percent": Decimal("13"),
        "commission_sell_percent": Decimal("10"),
    }
    defaults.update(overrides)
    return PaymentChannel(**defaults)


def _make_order(user: User | None = None, **overrides) -> Order:
    user = user or _make_user()
    defaults = {
        "user_id": user.id,
        "platform": "PAYPAL",
        "side": Side.BUY,
        "destination": "USDT - TRC20",
        "destination_currency": "USDT",
        "amount": Decimal("100"),
        "paypal_email": "ana@example.com",
        "recipient_details": {"type": "USDT", "wallet": "TXabc", "network": "TRC20"},
        "commission_percent": Decimal("13"),
        "base_fee_percent": Decimal("0"),
        "discount_percent": Decimal("0"),
        "total_pct": Decimal("13"),
        "exchange_rate_used": Decimal("1"),
        "final_usd": Decimal("87"),
        "final_usdt": Decimal("87"),
    }
    defaults.update(overrides)
    order = Order(**defaults)
    order.user = user
    return order


@pytest.fixture
def make_user():
    """Factory fixture for User instances."""
    return _make_user


@pytest.fixture
def make_channel():
    """Factory fixture for PaymentChannel instances."""
    return _make_channel


@pytest.fixture
def make_order():
    """Factory fixture for Order instances (owner attached)."""
    return _make_order


@pytest.fixture
def make_rate():
    def _make(currency: str = "BS", rate: str = "45") -> ExchangeRate:
        return ExchangeRate(currency=currency, rate=Decimal(rate))
    return _make


# --- Tokens ---


@pytest.fixture
def user_token():
    return security.create_access_token("user_2abc", email="ana@example.com")


@pytest.fixture
def admin_token():
    return security.create_access_token("admin_1", email="ops@paydesk.app", role="admin")


@pytest.fixture
def auth_headers(user_token):
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


# --- Dependency Override Helpers ---


@pytest_asyncio.fixture
async def client(mock_db, mock_redis):
    """
    Async HTTP test client with get_db and get_redis overridden
    to use test doubles.
    """
    from app.main import app

    async def override_get_db():
        yield mock_db

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
