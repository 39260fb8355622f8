"""Payment sessions and webhook events

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "payment_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("session_id", sa.String(255), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("user_email", sa.String(255), nullable=True),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("plan_id", sa.String(50), nullable=False),
        sa.Column("plan_name", sa.String(50), nullable=False),
        sa.Column("price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("billing_cycle", sa.String(20), nullable=False, server_default="monthly"),
        sa.Column("amount_minor", sa.Integer(), nullable=True),
        sa.Column("price_id", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("conflict_status", sa.String(20), nullable=True),
        sa.Column("transaction_id", sa.String(255), nullable=True),
        sa.Column("provisioning_state", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("provisioning_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("subscription_id", sa.String(64), nullable=True),
        sa.Column("last_error", sa.String(1000), nullable=True),
        sa.Column("status_updated_at", sa.DateTime(), nullable=True),
        sa.Column("provisioned_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_payment_sessions_session_id", "payment_sessions", ["session_id"], unique=True)
    op.create_index("idx_payment_sessions_user_created", "payment_sessions", ["user_id", "created_at"])
    op.create_index("idx_payment_sessions_status_prov", "payment_sessions", ["status", "provisioning_state"])

    op.create_table(
        "webhook_events",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("session_id", sa.String(255), nullable=True),
        sa.Column("resolved_status", sa.String(20), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("outcome", sa.String(50), nullable=True),
        sa.Column("received_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_webhook_events_session_id", "webhook_events", ["session_id"])


def downgrade() -> None:
    op.drop_index("ix_webhook_events_session_id", table_name="webhook_events")
    op.drop_table("webhook_events")
    op.drop_index("idx_payment_sessions_status_prov", table_name="payment_sessions")
    op.drop_index("idx_payment_sessions_user_created", table_name="payment_sessions")
    op.drop_index("ix_payment_sessions_session_id", table_name="payment_sessions")
    op.drop_table("payment_sessions")
