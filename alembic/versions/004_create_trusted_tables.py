"""create trusted_intakes, trusted_profiles and trusted_audits tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID

# revision identifiers, used by Alembic
revision = "004"
down_revision = "003"
branch_labels = None
depends_on = None


def upgrade() -> None:
    contributortype = sa.Enum("COMPANY", "FREELANCER", name="contributortype")
    contributortype.create(op.get_bind(), checkfirst=True)

    auditaction = sa.Enum(
        "INTAKE_SUBMITTED", "INTAKE_APPROVED", "INTAKE_REJECTED", "PROFILE_UPDATED",
        name="trustedauditaction",
    )
    auditaction.create(op.get_bind(), checkfirst=True)

    # Created in 003
    reviewstatus = ENUM("PENDING", "APPROVED", "REJECTED", name="reviewstatus", create_type=False)

    op.create_table(
        "trusted_intakes",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            index=True,
            nullable=False,
        ),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("occupation", sa.String(100), nullable=False),
        sa.Column("contributor_type", contributortype, nullable=False),
        sa.Column("company_name", sa.String(200), nullable=True),
        sa.Column("website", sa.String(255), nullable=True),
        sa.Column("country", sa.String(60), nullable=False),
        sa.Column("tx_per_month", sa.Integer(), nullable=False),
        sa.Column("avg_per_tx_usd", sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column("range_min_usd", sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column("range_max_usd", sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column("monthly_total_usd", sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column("service_description", sa.Text(), nullable=False),
        sa.Column("clients_type", sa.String(20), nullable=True),
        sa.Column("clients_countries", sa.String(255), nullable=True),
        sa.Column(
            "accepts_chargeback_liability",
            sa.Boolean(),
            server_default=sa.false(),
            nullable=False,
        ),
        sa.Column("accepts_allowed_use", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("accepts_data_processing", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("status", reviewstatus, server_default="PENDING", nullable=False),
        sa.Column("reviewer_id", sa.String(64), nullable=True),
        sa.Column("decision_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    op.create_table(
        "trusted_profiles",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            unique=True,
            nullable=False,
        ),
        sa.Column("enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("status", reviewstatus, server_default="APPROVED", nullable=False),
        sa.Column(
            "max_per_tx_usd",
            sa.Numeric(precision=18, scale=2),
            server_default="200",
            nullable=False,
        ),
        sa.Column(
            "max_monthly_usd",
            sa.Numeric(precision=18, scale=2),
            server_default="1000",
            nullable=False,
        ),
        sa.Column("hold_hours", sa.Integer(), server_default="48", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("reviewer_id", sa.String(64), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    op.create_table(
        "trusted_audits",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "intake_id",
            UUID(as_uuid=True),
            sa.ForeignKey("trusted_intakes.id"),
            nullable=True,
        ),
        sa.Column("action", auditaction, nullable=False),
        sa.Column("details", JSONB(), server_default="{}", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table("trusted_audits")
    op.drop_table("trusted_profiles")
    op.drop_table("trusted_intakes")
    sa.Enum(name="trustedauditaction").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="contributortype").drop(op.get_bind(), checkfirst=True)
