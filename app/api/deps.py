"""
Reusable FastAPI dependencies for authentication and authorization.

Dependencies:
  - get_identity          — verified provider identity from the bearer token (401)
  - get_optional_identity — same, but None when no/invalid token is sent
  - get_current_user      — synced User row for the identity (404 if not synced)
  - require_admin         — identity that passes the admin policy (403)
  - get_actor             — Actor(user, is_admin) for owner-or-admin resources
"""

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Forbidden, NotFound, Unauthorized
from app.core.security import Actor, Identity, verify_token
from app.database import get_db
from app.models.user import User

BEARER_PREFIX = "Bearer "


# ---------------------------------------------------------------------------
# Core: extract identity from JWT
# ---------------------------------------------------------------------------


def identity_from_header(authorization: str | None) -> Identity:
    """Parse ``Authorization: Bearer <token>`` and verify it."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise Unauthorized("Not authenticated")
    return verify_token(authorization[len(BEARER_PREFIX):])


async def get_identity(
    authorization: str | None = Header(None, description="Bearer <access_token>"),
) -> Identity:
    return identity_from_header(authorization)


async def get_optional_identity(
    authorization: str | None = Header(None, description="Bearer <access_token>"),
) -> Identity | None:
    if not authorization:
        return None
    try:
        return identity_from_header(authorization)
    except Unauthorized:
        return None


async def find_user(db: AsyncSession, subject: str) -> User | None:
    result = await db.execute(select(User).where(User.clerk_id == subject))
    return result.scalar_one_or_none()


async def get_current_user(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> User:
    """The User row for the token's subject."""
    user = await find_user(db, identity.subject)
    if user is None:
        raise NotFound("User not synced")
    return user


# ---------------------------------------------------------------------------
# Admin policy
# ---------------------------------------------------------------------------


async def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_admin:
        raise Forbidden("Admin access required")
    return identity


async def get_actor(
    identity: Identity = Depends(get_identity),
    user: User = Depends(get_current_user),
) -> Actor:
    return Actor(user=user, is_admin=identity.is_admin)
