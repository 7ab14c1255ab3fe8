# ruff: noqa: I001
"""Ledger core tables: users, categories, transactions, budgets, recurrences.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2025-12-01
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


_TYPES = "'INCOME','EXPENSE'"
_FREQUENCIES = "'DAILY','WEEKLY','BIWEEKLY','MONTHLY','QUARTERLY','YEARLY'"


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    cols = [
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.func.now(),
        )
    ]
    if updated:
        cols.append(
            sa.Column(
                "updated_at",
                sa.DateTime(),
                nullable=False,
                server_default=sa.func.now(),
            )
        )
    return cols


def upgrade() -> None:
    # users
    op.create_table(
        "users",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=True),
        *_timestamps(updated=False),
    )

    # categories
    op.create_table(
        "categories",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(32),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column(
            "color",
            sa.String(7),
            nullable=False,
            server_default=sa.text("'#6366f1'"),
        ),
        sa.Column("icon", sa.String(), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint("name", "user_id", name="uq_categories_name_user"),
    )
    op.create_index("ix_categories_user_id", "categories", ["user_id"])

    # recurrences (before transactions: transactions reference them)
    op.create_table(
        "recurrences",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(32),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.String(32),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("frequency", sa.String(16), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("next_due_date", sa.DateTime(), nullable=False),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_recurrences_amount_positive"),
        sa.CheckConstraint(f"type in ({_TYPES})", name="ck_recurrences_type"),
        sa.CheckConstraint(f"frequency in ({_FREQUENCIES})", name="ck_recurrences_frequency"),
    )
    op.create_index("ix_recurrences_user_id", "recurrences", ["user_id"])
    op.create_index("ix_recurrences_next_due_date", "recurrences", ["next_due_date"])
    op.create_index("ix_recurrences_is_active", "recurrences", ["is_active"])

    # transactions
    op.create_table(
        "transactions",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(32),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.String(32),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column(
            "recurrence_id",
            sa.String(32),
            sa.ForeignKey("recurrences.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        sa.CheckConstraint(f"type in ({_TYPES})", name="ck_transactions_type"),
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])
    op.create_index("ix_transactions_category_id", "transactions", ["category_id"])
    op.create_index("ix_transactions_date", "transactions", ["date"])

    # budgets
    op.create_table(
        "budgets",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(32),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.String(32),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("spent", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id", "category_id", "month", "year", name="uq_budgets_user_category_month_year"
        ),
        sa.CheckConstraint("amount >= 0", name="ck_budgets_amount_nonnegative"),
        sa.CheckConstraint("month >= 1 AND month <= 12", name="ck_budgets_month_range"),
    )
    op.create_index("ix_budgets_user_id", "budgets", ["user_id"])
    op.create_index("ix_budgets_month_year", "budgets", ["month", "year"])


def downgrade() -> None:
    op.drop_index("ix_budgets_month_year", table_name="budgets")
    op.drop_index("ix_budgets_user_id", table_name="budgets")
    op.drop_table("budgets")
    op.drop_index("ix_transactions_date", table_name="transactions")
    op.drop_index("ix_transactions_category_id", table_name="transactions")
    op.drop_index("ix_transactions_user_id", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_recurrences_is_active", table_name="recurrences")
    op.drop_index("ix_recurrences_next_due_date", table_name="recurrences")
    op.drop_index("ix_recurrences_user_id", table_name="recurrences")
    op.drop_table("recurrences")
    op.drop_index("ix_categories_user_id", table_name="categories")
    op.drop_table("categories")
    op.drop_table("users")
