"""
Authentication provider webhook — keeps the local User table in sync.

The provider posts ``user.created`` / ``user.updated`` events signed with
HMAC-SHA256 over the raw body (hex digest in ``X-Webhook-Signature``).
"""

import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import find_user
from app.config import settings
from app.core.errors import Unauthorized, ValidationError
from app.database import get_db
from app.models.user import User
from app.schemas.user import SuccessResponse, UserSyncPayload

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNATURE_HEADER = "X-Webhook-Signature"


def verify_signature(payload_body: bytes, signature: str) -> bool:
    """
    Check the HMAC-SHA256 signature of a webhook body.

    When WEBHOOK_SECRET is empty (dev), unsigned requests are accepted.
    """
    secret = settings.WEBHOOK_SECRET
    if not secret:
        return True

    expected = hmac.new(
        secret.encode(),
        payload_body,
        hashlib.sha256,
    ).hexdigest()

    return hmac.compare_digest(expected, signature or "")


def _primary_email(data: dict) -> str | None:
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for entry in addresses:
        if primary_id and entry.get("id") == primary_id:
            return entry.get("email_address")
    return addresses[0].get("email_address") if addresses else None


def _full_name(data: dict) -> str | None:
    parts = [data.get("first_name"), data.get("last_name")]
    name = " ".join(p.strip() for p in parts if p and p.strip())
    return name or None


@router.post("/user-created", response_model=SuccessResponse)
async def user_created(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Create or update the User for the event's subject."""
    body = await request.body()
    if not verify_signature(body, request.headers.get(SIGNATURE_HEADER, "")):
        raise Unauthorized("Invalid webhook signature")

    try:
        payload = UserSyncPayload.model_validate(json.loads(body))
    except ValueError:
        raise ValidationError("Invalid webhook payload")

    subject = payload.data.get("id")
    if not subject:
        raise ValidationError("Missing user id", missing=["id"])

    email = _primary_email(payload.data)
    full_name = _full_name(payload.data)

    user = await find_user(db, subject)
    if user is None:
        user = User(clerk_id=subject, email=email, full_name=full_name)
        db.add(user)
        logger.info("User %s created from %s", subject, payload.type)
    else:
        if email:
            user.email = email
        if full_name:
            user.full_name = full_name
        logger.info("User %s updated from %s", subject, payload.type)

    await db.flush()
    return SuccessResponse()
