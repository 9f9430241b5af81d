"""Add billing_account and billing_audit_log tables.

Revision ID: b7c8d9e0f1a2
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "b7c8d9e0f1a2"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create billing_account (versioned entitlement row) and its append-only audit log."""
    op.create_table(
        "billing_account",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("external_user_id", sa.String(255), nullable=False),
        sa.Column("is_pro", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("plan", sa.String(50), nullable=False, server_default="free"),
        sa.Column("payment_customer_id", sa.String(255), nullable=True),
        sa.Column("payment_subscription_id", sa.String(255), nullable=True),
        # Optimistic concurrency token
        sa.Column("billing_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("last_billing_event_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("billing_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("external_user_id", name="uq_billing_account_external_user_id"),
    )
    op.create_index(
        "idx_billing_account_payment_customer_id", "billing_account", ["payment_customer_id"]
    )
    op.create_index(
        "idx_billing_account_payment_subscription_id",
        "billing_account",
        ["payment_subscription_id"],
    )

    op.create_table(
        "billing_audit_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("provider_event_id", sa.String(255), nullable=True),
        sa.Column("source", sa.Text(), nullable=False, server_default="webhook"),
        sa.Column(
            "previous_state",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "new_state",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["billing_account.id"],
            name="fk_billing_audit_log_account_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index("idx_billing_audit_log_account_id", "billing_audit_log", ["account_id"])
    op.create_index(
        "idx_billing_audit_log_provider_event_id", "billing_audit_log", ["provider_event_id"]
    )
    op.create_index("idx_billing_audit_log_created_at", "billing_audit_log", ["created_at"])


def downgrade():
    """Drop the billing tables."""
    op.drop_index("idx_billing_audit_log_created_at", table_name="billing_audit_log")
    op.drop_index("idx_billing_audit_log_provider_event_id", table_name="billing_audit_log")
    op.drop_index("idx_billing_audit_log_account_id", table_name="billing_audit_log")
    op.drop_table("billing_audit_log")
    op.drop_index("idx_billing_account_payment_subscription_id", table_name="billing_account")
    op.drop_index("idx_billing_account_payment_customer_id", table_name="billing_account")
    op.drop_table("billing_account")
