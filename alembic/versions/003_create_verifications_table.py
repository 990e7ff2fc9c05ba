"""create verifications table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic
revision = "003"
down_revision = "002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Shared by verifications, trusted_intakes and trusted_profiles
    reviewstatus = sa.Enum("PENDING", "APPROVED", "REJECTED", name="reviewstatus")
    reviewstatus.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "verifications",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            unique=True,
            nullable=False,
        ),
        sa.Column("document_url", sa.String(500), nullable=False),
        sa.Column("selfie_url", sa.String(500), nullable=False),
        sa.Column("status", reviewstatus, server_default="PENDING", nullable=False),
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


def downgrade() -> None:
    op.drop_table("verifications")
    sa.Enum(name="reviewstatus").drop(op.get_bind(), checkfirst=True)
