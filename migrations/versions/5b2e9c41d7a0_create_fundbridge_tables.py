"""Create users, startup_analyses, fund_requests and subscriptions tables.

Fund request indexes back the governance and portfolio reads, which always
filter on (startup_id | investor_id, status).
"""

from __future__ import annotations

import logging

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "5b2e9c41d7a0"
down_revision = None
branch_labels = None
depends_on = None

logger = logging.getLogger(__name__)

_JSON = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def _timestamp(name: str, *, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.DateTime(timezone=True), nullable=True)
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("domain", sa.String(length=255), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_index("ix_users_role", "users", ["role"], unique=False)

    op.create_table(
        "startup_analyses",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("verdict", sa.String(length=16), nullable=False),
        sa.Column("submission", _JSON, nullable=False),
        sa.Column("result", _JSON, nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_startup_analyses"),
    )
    op.create_index(
        "ix_startup_analyses_user_created", "startup_analyses", ["user_id", "created_at"], unique=False
    )
    op.create_index("ix_startup_analyses_score", "startup_analyses", ["score"], unique=False)

    op.create_table(
        "fund_requests",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("startup_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("investor_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("funding_type", sa.String(length=32), nullable=False),
        sa.Column("equity_percentage", sa.Float(), nullable=True),
        sa.Column("interest_rate", sa.Float(), nullable=True),
        sa.Column("loan_tenure", sa.String(length=64), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("use_of_funds", sa.Text(), nullable=True),
        sa.Column("company_name", sa.String(length=255), nullable=True),
        sa.Column("domain", sa.String(length=255), nullable=True),
        sa.Column("year_of_establishment", sa.Integer(), nullable=True),
        sa.Column("team_size", sa.Integer(), nullable=True),
        sa.Column("previous_funding", sa.Float(), nullable=False, server_default="0"),
        sa.Column("funding_timeline", sa.String(length=64), nullable=True),
        sa.Column("milestone", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("payment_order_id", sa.String(length=255), nullable=True),
        sa.Column("payment_id", sa.String(length=255), nullable=True),
        sa.Column("payment_signature", sa.String(length=255), nullable=True),
        sa.Column("message_id", sa.Uuid(as_uuid=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("approved_at", nullable=True),
        _timestamp("rejected_at", nullable=True),
        _timestamp("completed_at", nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_fund_requests"),
    )
    op.create_index(
        "ix_fund_requests_startup_investor",
        "fund_requests",
        ["startup_id", "investor_id", "created_at"],
        unique=False,
    )
    op.create_index("ix_fund_requests_status", "fund_requests", ["status", "created_at"], unique=False)
    op.create_index(
        "ix_fund_requests_startup_status", "fund_requests", ["startup_id", "status"], unique=False
    )
    op.create_index(
        "ix_fund_requests_investor_status", "fund_requests", ["investor_id", "status"], unique=False
    )

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("plan", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("order_id", sa.String(length=255), nullable=False),
        sa.Column("payment_id", sa.String(length=255), nullable=True),
        sa.Column("payment_signature", sa.String(length=255), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_subscriptions"),
    )
    op.create_index(
        "ix_subscriptions_user_status", "subscriptions", ["user_id", "status"], unique=False
    )
    op.create_index("ix_subscriptions_order_id", "subscriptions", ["order_id"], unique=False)
    logger.info("fundbridge.migration.applied", extra={"revision": revision})


def downgrade() -> None:
    op.drop_index("ix_subscriptions_order_id", table_name="subscriptions")
    op.drop_index("ix_subscriptions_user_status", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("ix_fund_requests_investor_status", table_name="fund_requests")
    op.drop_index("ix_fund_requests_startup_status", table_name="fund_requests")
    op.drop_index("ix_fund_requests_status", table_name="fund_requests")
    op.drop_index("ix_fund_requests_startup_investor", table_name="fund_requests")
    op.drop_table("fund_requests")
    op.drop_index("ix_startup_analyses_score", table_name="startup_analyses")
    op.drop_index("ix_startup_analyses_user_created", table_name="startup_analyses")
    op.drop_table("startup_analyses")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_table("users")
