"""credit ledger, pending conversions, sites and contact submissions

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "user_credits",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint("balance >= 0", name="ck_user_credits_balance_non_negative"),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("related_conversion_id", sa.String(), nullable=True),
        sa.Column("idempotency_key", sa.String(), nullable=True),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint(
            "reason IN ('grant', 'spend', 'conversion', 'adjustment')",
            name="ck_credit_transactions_reason",
        ),
        sa.CheckConstraint("amount <> 0", name="ck_credit_transactions_amount_non_zero"),
        sa.ForeignKeyConstraint(["user_id"], ["user_credits.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_credit_transactions_user_id", "credit_transactions", ["user_id"], unique=False)
    op.create_index("ix_credit_transactions_created_at", "credit_transactions", ["created_at"], unique=False)
    op.create_index(
        "ix_credit_transactions_related_conversion_id",
        "credit_transactions",
        ["related_conversion_id"],
        unique=False,
    )
    op.create_index(
        "uq_credit_transactions_user_sequence",
        "credit_transactions",
        ["user_id", "sequence"],
        unique=True,
    )
    op.create_index(
        "uq_credit_transactions_user_idempotency_key",
        "credit_transactions",
        ["user_id", "idempotency_key"],
        unique=True,
    )

    op.create_table(
        "pending_conversions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("anonymous_session_id", sa.String(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("resolution", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("cleared_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("amount > 0", name="ck_pending_conversions_amount_positive"),
        sa.CheckConstraint("status IN ('pending', 'cleared')", name="ck_pending_conversions_status"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pending_conversions_user_id", "pending_conversions", ["user_id"], unique=False)
    op.create_index(
        "uq_pending_conversions_user_pending",
        "pending_conversions",
        ["user_id"],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "sites",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("subdomain", sa.String(), nullable=False),
        sa.Column("custom_domain", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("plan", sa.JSON(), nullable=True),
        sa.Column("html", sa.Text(), nullable=True),
        sa.Column("vercel_url", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("subdomain"),
        sa.UniqueConstraint("custom_domain"),
    )
    op.create_index("ix_sites_user_id", "sites", ["user_id"], unique=False)
    op.create_index("ix_sites_created_at", "sites", ["created_at"], unique=False)

    op.create_table(
        "contact_submissions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("site_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["site_id"], ["sites.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_contact_submissions_site_id", "contact_submissions", ["site_id"], unique=False)
    op.create_index("ix_contact_submissions_user_id", "contact_submissions", ["user_id"], unique=False)
    op.create_index("ix_contact_submissions_created_at", "contact_submissions", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_contact_submissions_created_at", table_name="contact_submissions")
    op.drop_index("ix_contact_submissions_user_id", table_name="contact_submissions")
    op.drop_index("ix_contact_submissions_site_id", table_name="contact_submissions")
    op.drop_table("contact_submissions")
    op.drop_index("ix_sites_created_at", table_name="sites")
    op.drop_index("ix_sites_user_id", table_name="sites")
    op.drop_table("sites")
    op.drop_index("uq_pending_conversions_user_pending", table_name="pending_conversions")
    op.drop_index("ix_pending_conversions_user_id", table_name="pending_conversions")
    op.drop_table("pending_conversions")
    op.drop_index("uq_credit_transactions_user_idempotency_key", table_name="credit_transactions")
    op.drop_index("uq_credit_transactions_user_sequence", table_name="credit_transactions")
    op.drop_index("ix_credit_transactions_related_conversion_id", table_name="credit_transactions")
    op.drop_index("ix_credit_transactions_created_at", table_name="credit_transactions")
    op.drop_index("ix_credit_transactions_user_id", table_name="credit_transactions")
    op.drop_table("credit_transactions")
    op.drop_table("user_credits")
