"""
Core security module — bearer token verification and the admin policy.

Tokens are issued by the external authentication provider; this module
only verifies them and extracts the subject. Supports RS256 with
HS256 fallback when RSA key files are missing. ``create_access_token``
mints tokens with the same claims for local development and tests.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt

from app.config import settings
from app.core.errors import Unauthorized

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Key loading
# ---------------------------------------------------------------------------

_private_key: str | bytes | None = None
_public_key: str | bytes | None = None
_algorithm: str = settings.JWT_ALGORITHM


def _load_keys() -> None:
    """Load RSA keys from disk. Falls back to HS256 with SECRET_KEY."""
    global _private_key, _public_key, _algorithm

    private_path = Path(settings.JWT_PRIVATE_KEY_PATH)
    public_path = Path(settings.JWT_PUBLIC_KEY_PATH)

    if public_path.exists():
        _public_key = public_path.read_bytes()
        _private_key = private_path.read_bytes() if private_path.exists() else None
        _algorithm = "RS256"
        logger.info("Loaded RSA public key for JWT verification (RS256).")
    else:
        _private_key = settings.SECRET_KEY
        _public_key = settings.SECRET_KEY
        _algorithm = "HS256"
        logger.warning(
            "RSA key files not found. Falling back to HS256. "
            "Run 'python scripts/generate_keys.py' to generate keys.",
        )


_load_keys()


def configure_keys(
    *, private_key: str | bytes, public_key: str | bytes, algorithm: str = "RS256"
) -> None:
    """Override keys at runtime (used in tests)."""
    global _private_key, _public_key, _algorithm
    _private_key = private_key
    _public_key = public_key
    _algorithm = algorithm


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Identity:
    """Authenticated subject as asserted by the provider's token."""
    subject: str
    email: str | None
    is_admin: bool


@dataclass(frozen=True)
class Actor:
    """A synced user acting on a resource, with the admin flag resolved."""
    user: object
    is_admin: bool

    @property
    def user_id(self):
        return self.user.id

    def can_access(self, owner_id) -> bool:
        return self.is_admin or self.user.id == owner_id


def is_admin(claims: dict) -> bool:
    """The one admin policy: role claim or an allow-listed subject."""
    if claims.get("role") == settings.ADMIN_ROLE:
        return True
    return claims.get("sub") in settings.ADMIN_SUBJECTS


# ---------------------------------------------------------------------------
# Token creation (dev / tests)
# ---------------------------------------------------------------------------


def create_access_token(subject: str, email: str | None = None, role: str | None = None) -> str:
    """Create an access JWT carrying the provider's claim layout."""
    if _private_key is None:
        raise RuntimeError("No signing key configured")
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(subject),
        "iat": now,
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    if email:
        payload["email"] = email
    if role:
        payload["role"] = role
    return jwt.encode(payload, _private_key, algorithm=_algorithm)


# ---------------------------------------------------------------------------
# Token verification
# ---------------------------------------------------------------------------


def decode_token(token: str) -> dict:
    """
    Decode and return the JWT payload.

    Raises Unauthorized on expiry or any other invalid-token error.
    """
    try:
        return jwt.decode(token, _public_key, algorithms=[_algorithm])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token has expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token")


def verify_token(token: str) -> Identity:
    """Decode a JWT and build the caller's Identity."""
    claims = decode_token(token)
    subject = claims.get("sub")
    if not subject:
        raise Unauthorized("Token has no subject")
    return Identity(
        subject=str(subject),
        email=claims.get("email"),
        is_admin=is_admin(claims),
    )
