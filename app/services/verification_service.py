"""
Verification (KYC) workflow.

    NONE -> PENDING -> APPROVED | REJECTED
    submit from any state -> PENDING (same row, one per user)

Document and selfie images arrive as already-hosted URLs. Every state
change is announced on the customer's private topic and the admin topic;
email and push go through Celery and never fail the request.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.errors import Forbidden, InvalidStatus, NotFound, ValidationError
from app.models.user import User
from app.models.verification import DECISIONS, ReviewStatus, Verification
from app.services.notification_service import (
    verification_decision_email,
    verification_decision_push,
    verification_submitted_email,
)
from app.services.realtime_service import (
    ADMIN_TOPIC,
    EVENT_VERIFICATION_STATUS,
    EVENT_VERIFICATION_SUBMITTED,
    EVENT_VERIFICATION_UPDATED,
    RealtimePublisher,
    user_topic,
)
from app.tasks.notification_tasks import dispatch, send_email, send_push

logger = logging.getLogger(__name__)

STATUS_NONE = "NONE"


def verification_to_dict(verification: Verification, user: User | None = None) -> dict:
    user = user if user is not None else verification.user
    return {
        "id": verification.id,
        "userId": verification.user_id,
        "documentUrl": verification.document_url,
        "selfieUrl": verification.selfie_url,
        "status": verification.status,
        "createdAt": verification.created_at,
        "updatedAt": verification.updated_at,
        "user": {
            "fullName": getattr(user, "full_name", None),
            "email": getattr(user, "email", None),
        },
    }


class VerificationService:

    def __init__(self, db: AsyncSession, redis):
        self.db = db
        self.publisher = RealtimePublisher(redis)

    async def _for_user(self, user_id) -> Verification | None:
        result = await self.db.execute(
            select(Verification).where(Verification.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def submit(self, user: User, document_url: str | None, selfie_url: str | None) -> Verification:
        """Upsert the user's verification back to PENDING."""
        document_url = (document_url or "").strip()
        selfie_url = (selfie_url or "").strip()
        missing = [name for name, value in (("documentUrl", document_url), ("selfieUrl", selfie_url)) if not value]
        if missing:
            raise ValidationError(f"Missing fields: {', '.join(missing)}", missing=missing)

        verification = await self._for_user(user.id)
        if verification is None:
            verification = Verification(
                user_id=user.id, document_url=document_url, selfie_url=selfie_url,
            )
            self.db.add(verification)
        else:
            verification.resubmit(document_url, selfie_url)

        await self.db.flush()
        await self.db.commit()
        logger.info("Verification submitted by user %s", user.id)

        payload = verification_to_dict(verification, user)
        await self.publisher.publish(
            user_topic(user.id), EVENT_VERIFICATION_STATUS, {"status": verification.status},
        )
        await self.publisher.publish(ADMIN_TOPIC, EVENT_VERIFICATION_SUBMITTED, payload)

        subject, html = verification_submitted_email(
            user.display_name, user.email,
            datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
        )
        dispatch(send_email, settings.ADMIN_EMAIL, subject, html)

        for token in await self._admin_push_tokens():
            dispatch(
                send_push, token, "New verification received",
                f"{user.display_name} sent documents for review.",
            )
        return verification

    async def _admin_push_tokens(self) -> list[str]:
        if not settings.ADMIN_SUBJECTS:
            return []
        result = await self.db.execute(
            select(User.expo_push_token).where(
                User.clerk_id.in_(settings.ADMIN_SUBJECTS),
                User.expo_push_token.is_not(None),
            )
        )
        return [token for token in result.scalars().all() if token]

    async def status_for(self, user_id) -> str:
        verification = await self._for_user(user_id)
        return verification.status.value if verification is not None else STATUS_NONE

    async def list_all(self, status: str | None = None) -> list[Verification]:
        stmt = select(Verification).order_by(Verification.updated_at.desc())
        if status:
            try:
                stmt = stmt.where(Verification.status == ReviewStatus(status.upper()))
            except ValueError:
                raise InvalidStatus("Invalid status")
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def decide(self, verification_id, decision: str, actor_is_admin: bool, reviewer: str) -> Verification:
        """Admin decision: APPROVED or REJECTED."""
        if not actor_is_admin:
            raise Forbidden("Only an admin can review verifications")
        try:
            status = ReviewStatus(str(decision or "").strip().upper())
        except ValueError:
            raise InvalidStatus("Invalid status")
        if status not in DECISIONS:
            raise InvalidStatus("Invalid status")

        result = await self.db.execute(
            select(Verification).where(Verification.id == verification_id)
        )
        verification = result.scalar_one_or_none()
        if verification is None:
            raise NotFound("Verification not found")

        verification.status = status
        verification.reviewer_id = reviewer
        verification.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        await self.db.commit()
        logger.info("Verification %s -> %s by %s", verification.id, status.value, reviewer)

        approved = status == ReviewStatus.APPROVED
        user = verification.user

        if user is not None and user.email:
            subject, html = verification_decision_email(approved)
            dispatch(send_email, user.email, subject, html)

        await self.publisher.publish(
            user_topic(verification.user_id), EVENT_VERIFICATION_STATUS, {"status": status},
        )

        if user is not None and user.expo_push_token:
            title, body = verification_decision_push(approved)
            dispatch(send_push, user.expo_push_token, title, body, {"verificationStatus": status.value})

        await self.publisher.publish(
            ADMIN_TOPIC, EVENT_VERIFICATION_UPDATED, verification_to_dict(verification, user),
        )
        return verification
