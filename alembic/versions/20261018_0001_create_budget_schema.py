"""create daily budget schema

Revision ID: 20261018_0001
Revises: 
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "recurring_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_recurring_transactions_user_id", "recurring_transactions", ["user_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("is_savings_op", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_kind", sa.String(length=16), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint(
            "user_id", "transaction_date", "auto_kind",
            name="uq_transactions_user_day_auto_kind",
        ),
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])
    op.create_index("ix_transactions_transaction_date", "transactions", ["transaction_date"])

    op.create_table(
        "budget_settings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("daily_budget_limit", sa.Float(), nullable=False, server_default="0"),
        sa.Column("auto_savings_percent", sa.Float(), nullable=False, server_default="0"),
        sa.Column("auto_goals_percent", sa.Float(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "day", name="uq_budget_settings_user_day"),
    )
    op.create_index("ix_budget_settings_user_id", "budget_settings", ["user_id"])
    op.create_index("ix_budget_settings_day", "budget_settings", ["day"])

    op.create_table(
        "goals",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("target_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("current_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("auto_savings_percent", sa.Float(), nullable=False, server_default="0"),
        sa.Column("is_currently_selected", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("url", sa.String(length=2048), nullable=True),
        sa.Column("decision", sa.String(length=50), nullable=True),
        sa.Column("decision_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "auto_savings_percent >= 0 AND auto_savings_percent <= 100",
            name="goals_auto_savings_percent_check",
        ),
    )
    op.create_index("ix_goals_user_id", "goals", ["user_id"])
    op.create_index("ix_goals_is_currently_selected", "goals", ["is_currently_selected"])


def downgrade() -> None:
    op.drop_table("goals")
    op.drop_table("budget_settings")
    op.drop_table("transactions")
    op.drop_table("recurring_transactions")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
