"""
Trusted third-party program — intake applications, admin decisions and
per-user limit profiles.

Shares the approve/reject pattern of the verification workflow: an
approved intake with limits materializes (or updates) the user's
TrustedProfile. Every submission, decision and profile edit leaves a
TrustedAudit row.
"""

import enum
import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidStatus, NotFound, ValidationError
from app.models.trusted import (
    DEFAULT_HOLD_HOURS,
    DEFAULT_MAX_MONTHLY_USD,
    DEFAULT_MAX_PER_TX_USD,
    AuditAction,
    ContributorType,
    TrustedAudit,
    TrustedIntake,
    TrustedProfile,
)
from app.models.user import User
from app.models.verification import DECISIONS, ReviewStatus
from app.services.notification_service import trusted_decision_email
from app.services.realtime_service import (
    ADMIN_TOPIC,
    EVENT_INTAKE_SUBMITTED,
    EVENT_TRUSTED_STATUS,
    RealtimePublisher,
    user_topic,
)
from app.tasks.notification_tasks import dispatch, send_email, send_push

logger = logging.getLogger(__name__)

REQUIRED_INTAKE_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "username",
    "occupation",
    "country",
    "tx_per_month",
    "avg_per_tx_usd",
    "monthly_total_usd",
    "service_description",
    "contributor_type",
)

DECLARATIONS = (
    "accepts_chargeback_liability",
    "accepts_allowed_use",
    "accepts_data_processing",
)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _decimal(value, field: str) -> Decimal | None:
    if value is None:
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {_camel(field)}", missing=[_camel(field)])
    if not number.is_finite() or number < 0:
        raise ValidationError(f"Invalid {_camel(field)}", missing=[_camel(field)])
    return number


def parse_limits(limits: dict | None) -> dict | None:
    """Validate decision limits: positive amounts, non-negative hold hours."""
    if not limits:
        return None
    try:
        max_per_tx = Decimal(str(limits["max_per_tx_usd"]))
        max_monthly = Decimal(str(limits["max_monthly_usd"]))
        hold_hours = int(limits["hold_hours"])
    except (KeyError, InvalidOperation, TypeError, ValueError):
        raise ValidationError("Invalid limits")
    if not max_per_tx.is_finite() or max_per_tx <= 0:
        raise ValidationError("maxPerTxUsd must be a positive number")
    if not max_monthly.is_finite() or max_monthly <= 0:
        raise ValidationError("maxMonthlyUsd must be a positive number")
    if hold_hours < 0:
        raise ValidationError("holdHours must be zero or greater")
    return {"max_per_tx_usd": max_per_tx, "max_monthly_usd": max_monthly, "hold_hours": hold_hours}


def _jsonable(value):
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    return value


def limits_to_dict(limits: dict | None) -> dict | None:
    if limits is None:
        return None
    return {
        "maxPerTxUsd": str(limits["max_per_tx_usd"]),
        "maxMonthlyUsd": str(limits["max_monthly_usd"]),
        "holdHours": limits["hold_hours"],
    }


class TrustedService:

    def __init__(self, db: AsyncSession, redis):
        self.db = db
        self.publisher = RealtimePublisher(redis)

    # --- Customer side ---

    async def submit_intake(
        self,
        user: User,
        data: dict,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> TrustedIntake:
        """Store an application. All required fields and declarations must be present."""
        missing = [
            _camel(name) for name in REQUIRED_INTAKE_FIELDS
            if data.get(name) in (None, "")
        ]
        if missing:
            raise ValidationError(f"Missing {', '.join(missing)}", missing=missing)
        if not all(data.get(name) for name in DECLARATIONS):
            raise ValidationError("You must accept all declarations")

        try:
            contributor_type = ContributorType(str(_jsonable(data["contributor_type"])).upper())
        except ValueError:
            raise ValidationError("Invalid contributorType", missing=["contributorType"])
        try:
            tx_per_month = int(data["tx_per_month"])
        except (TypeError, ValueError):
            raise ValidationError("Invalid txPerMonth", missing=["txPerMonth"])

        intake = TrustedIntake(
            user_id=user.id,
            first_name=data["first_name"],
            last_name=data["last_name"],
            email=data["email"],
            username=data["username"],
            phone=data.get("phone") or None,
            occupation=data["occupation"],
            contributor_type=contributor_type,
            company_name=data.get("company_name") or None,
            website=data.get("website") or None,
            country=data["country"],
            tx_per_month=tx_per_month,
            avg_per_tx_usd=_decimal(data["avg_per_tx_usd"], "avg_per_tx_usd"),
            range_min_usd=_decimal(data.get("range_min_usd"), "range_min_usd"),
            range_max_usd=_decimal(data.get("range_max_usd"), "range_max_usd"),
            monthly_total_usd=_decimal(data["monthly_total_usd"], "monthly_total_usd"),
            service_description=data["service_description"],
            clients_type=data.get("clients_type"),
            clients_countries=data.get("clients_countries") or None,
            accepts_chargeback_liability=True,
            accepts_allowed_use=True,
            accepts_data_processing=True,
            ip=ip,
            user_agent=user_agent,
        )
        self.db.add(intake)
        await self.db.flush()

        self.db.add(TrustedAudit(
            user_id=user.id,
            intake_id=intake.id,
            action=AuditAction.INTAKE_SUBMITTED,
            details={k: _jsonable(v) for k, v in data.items()},
        ))
        await self.db.flush()
        await self.db.commit()
        logger.info("Trusted intake %s submitted by user %s", intake.id, user.id)

        await self.publisher.publish(ADMIN_TOPIC, EVENT_INTAKE_SUBMITTED, {
            "id": intake.id,
            "userId": user.id,
            "firstName": intake.first_name,
            "lastName": intake.last_name,
            "email": intake.email,
            "monthlyTotalUsd": intake.monthly_total_usd,
            "createdAt": intake.created_at,
        })
        return intake

    async def get_profile(self, user_id) -> TrustedProfile | None:
        result = await self.db.execute(
            select(TrustedProfile).where(TrustedProfile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    # --- Admin side ---

    async def list_intakes(self, status: str | None = None) -> list[TrustedIntake]:
        stmt = select(TrustedIntake).order_by(TrustedIntake.created_at.desc())
        if status:
            try:
                stmt = stmt.where(TrustedIntake.status == ReviewStatus(status.upper()))
            except ValueError:
                raise InvalidStatus("Invalid status")
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def decide_intake(
        self,
        intake_id,
        decision: str,
        reviewer: str,
        limits: dict | None = None,
        notes: str | None = None,
    ) -> TrustedIntake:
        """Approve or reject an intake. Approval with limits upserts the profile."""
        try:
            status = ReviewStatus(str(decision or "").strip().upper())
        except ValueError:
            raise InvalidStatus("Invalid decision")
        if status not in DECISIONS:
            raise InvalidStatus("Invalid decision")
        parsed_limits = parse_limits(limits)

        result = await self.db.execute(
            select(TrustedIntake).where(TrustedIntake.id == intake_id)
        )
        intake = result.scalar_one_or_none()
        if intake is None:
            raise NotFound("Intake not found")

        intake.decide(status, reviewer)
        approved = status == ReviewStatus.APPROVED

        if approved and parsed_limits:
            await self._upsert_profile(
                intake.user_id,
                reviewer,
                enabled=True,
                status=ReviewStatus.APPROVED,
                notes=notes,
                **parsed_limits,
            )

        self.db.add(TrustedAudit(
            user_id=intake.user_id,
            intake_id=intake.id,
            action=AuditAction.INTAKE_APPROVED if approved else AuditAction.INTAKE_REJECTED,
            details={
                "intakeId": str(intake.id),
                "decision": status.value,
                "limits": limits_to_dict(parsed_limits),
                "notes": notes,
                "reviewedBy": reviewer,
            },
        ))
        await self.db.flush()
        await self.db.commit()
        logger.info("Trusted intake %s -> %s by %s", intake.id, status.value, reviewer)

        user = intake.user
        wire_limits = limits_to_dict(parsed_limits) if approved else None

        if user is not None and user.email:
            subject, html = trusted_decision_email(approved, wire_limits)
            dispatch(send_email, user.email, subject, html)

        await self.publisher.publish(
            user_topic(intake.user_id),
            EVENT_TRUSTED_STATUS,
            {"status": status, "limits": wire_limits},
        )

        if user is not None and user.expo_push_token:
            if approved and wire_limits:
                body = f"Limits: ${wire_limits['maxPerTxUsd']}/tx, ${wire_limits['maxMonthlyUsd']}/month"
            elif approved:
                body = "Your application was approved."
            else:
                body = "Review your information and try again."
            title = "Pilot program approved" if approved else "Pilot program rejected"
            dispatch(send_push, user.expo_push_token, title, body)

        return intake

    async def update_profile(self, user_id, reviewer: str, **fields) -> TrustedProfile:
        """Admin edit; creates the profile with default limits when absent."""
        clean = {k: v for k, v in fields.items() if v is not None}
        for name in ("max_per_tx_usd", "max_monthly_usd"):
            if name in clean:
                value = _decimal(clean[name], name)
                if value <= 0:
                    raise ValidationError(f"{_camel(name)} must be a positive number")
                clean[name] = value
        if "hold_hours" in clean and int(clean["hold_hours"]) < 0:
            raise ValidationError("holdHours must be zero or greater")
        if "status" in clean:
            try:
                clean["status"] = ReviewStatus(str(clean["status"]).upper())
            except ValueError:
                raise InvalidStatus("Invalid status")

        result = await self.db.execute(select(User.id).where(User.id == user_id))
        if result.scalar_one_or_none() is None:
            raise NotFound("User not found")

        profile = await self._upsert_profile(user_id, reviewer, **clean)
        self.db.add(TrustedAudit(
            user_id=user_id,
            action=AuditAction.PROFILE_UPDATED,
            details={k: _jsonable(v) for k, v in clean.items()},
        ))
        await self.db.flush()
        logger.info("Trusted profile for user %s updated by %s", user_id, reviewer)
        return profile

    async def _upsert_profile(self, user_id, reviewer: str, **fields) -> TrustedProfile:
        profile = await self.get_profile(user_id)
        if profile is None:
            profile = TrustedProfile(
                user_id=user_id,
                enabled=fields.get("enabled", True),
                status=fields.get("status", ReviewStatus.APPROVED),
                max_per_tx_usd=fields.get("max_per_tx_usd", DEFAULT_MAX_PER_TX_USD),
                max_monthly_usd=fields.get("max_monthly_usd", DEFAULT_MAX_MONTHLY_USD),
                hold_hours=fields.get("hold_hours", DEFAULT_HOLD_HOURS),
                notes=fields.get("notes"),
                reviewer_id=reviewer,
            )
            self.db.add(profile)
        else:
            for name, value in fields.items():
                if value is not None:
                    setattr(profile, name, value)
            profile.reviewer_id = reviewer
        await self.db.flush()
        return profile
