"""create orders and messages tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

# revision identifiers, used by Alembic
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    orderside = sa.Enum("BUY", "SELL", name="orderside")
    orderside.create(op.get_bind(), checkfirst=True)

    orderstatus = sa.Enum("PENDING", "COMPLETED", "CANCELLED", name="orderstatus")
    orderstatus.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "orders",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            index=True,
            nullable=False,
        ),
        sa.Column("platform", sa.String(40), nullable=False),
        sa.Column("side", orderside, nullable=False),
        sa.Column("destination", sa.String(60), nullable=False),
        sa.Column("destination_currency", sa.String(10), nullable=False),
        sa.Column("amount", sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column("paypal_email", sa.String(255), nullable=False),
        sa.Column("recipient_details", JSONB(), nullable=False),
        # Pricing snapshot, frozen at creation
        sa.Column("commission_percent", sa.Numeric(precision=7, scale=4), nullable=False),
        sa.Column("base_fee_percent", sa.Numeric(precision=7, scale=4), nullable=False),
        sa.Column("discount_percent", sa.Numeric(precision=7, scale=4), nullable=False),
        sa.Column("total_pct", sa.Numeric(precision=7, scale=4), nullable=False),
        sa.Column("exchange_rate_used", sa.Numeric(precision=18, scale=6), nullable=False),
        sa.Column("final_usd", sa.Numeric(precision=20, scale=6), nullable=False),
        sa.Column("final_usdt", sa.Numeric(precision=24, scale=6), nullable=False),
        sa.Column("status", orderstatus, server_default="PENDING", nullable=False),
        sa.Column("idempotency_key", sa.String(100), nullable=True),
        sa.Column("paypal_invoice_id", sa.String(100), nullable=True),
        sa.Column("real_profit", sa.Numeric(precision=18, scale=2), nullable=True),
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
        sa.CheckConstraint("amount > 0", name="ck_orders_amount_positive"),
        sa.UniqueConstraint(
            "user_id", "idempotency_key", name="uq_orders_user_idempotency_key",
        ),
    )
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_created_at", "orders", ["created_at"])

    op.create_table(
        "messages",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "order_id",
            UUID(as_uuid=True),
            sa.ForeignKey("orders.id"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "sender_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            index=True,
            nullable=False,
        ),
        sa.CheckConstraint(
            "content IS NOT NULL OR image_url IS NOT NULL",
            name="ck_messages_has_body",
        ),
    )


def downgrade() -> None:
    op.drop_table("messages")
    op.drop_index("ix_orders_created_at", table_name="orders")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_table("orders")
    sa.Enum(name="orderstatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="orderside").drop(op.get_bind(), checkfirst=True)
