from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class TransactionType(str, enum.Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class RecurrenceFrequency(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


def new_id() -> str:
    return uuid.uuid4().hex


def _enum_check(column: str, values: type[enum.Enum]) -> str:
    allowed = ",".join(f"'{v.value}'" for v in values)
    return f"{column} in ({allowed})"


# Money is NUMERIC(12, 2) everywhere; Python values are Decimal.
_MONEY = Numeric(12, 2)


# ---------------------------
# Owner: users
# ---------------------------


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )


# ---------------------------
# Reference: categories
# ---------------------------


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    color: Mapped[str] = mapped_column(String(7), nullable=False, server_default=text("'#6366f1'"))
    icon: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    __table_args__ = (UniqueConstraint("name", "user_id", name="uq_categories_name_user"),)


# ---------------------------
# Core: transactions
# ---------------------------


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Naive UTC; month/year of the transaction are read from this value.
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    # Back-reference only; the recurrence does not own its generated rows.
    recurrence_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("recurrences.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    category: Mapped[Category] = relationship(lazy="joined", innerjoin=True)
    recurrence: Mapped[Recurrence | None] = relationship(back_populates="transactions")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        CheckConstraint(_enum_check("type", TransactionType), name="ck_transactions_type"),
    )


# ---------------------------
# Derived: budgets
# ---------------------------


class Budget(Base):
    __tablename__ = "budgets"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    # Cached sum of EXPENSE transactions sharing (user, category, month, year).
    # Adjusted incrementally by the ledger; never written from a stale read.
    spent: Mapped[Decimal] = mapped_column(_MONEY, nullable=False, server_default=text("0"))
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    category: Mapped[Category] = relationship(lazy="joined", innerjoin=True)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "category_id", "month", "year", name="uq_budgets_user_category_month_year"
        ),
        Index("ix_budgets_month_year", "month", "year"),
        CheckConstraint("amount >= 0", name="ck_budgets_amount_nonnegative"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_budgets_month_range"),
    )


# ---------------------------
# Templates: recurrences
# ---------------------------


class Recurrence(Base):
    __tablename__ = "recurrences"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    frequency: Mapped[str] = mapped_column(String(16), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    # Advanced only by the recurrence processor.
    next_due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    category: Mapped[Category] = relationship(lazy="joined", innerjoin=True)
    transactions: Mapped[list[Transaction]] = relationship(
        back_populates="recurrence", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_recurrences_amount_positive"),
        CheckConstraint(_enum_check("type", TransactionType), name="ck_recurrences_type"),
        CheckConstraint(
            _enum_check("frequency", RecurrenceFrequency), name="ck_recurrences_frequency"
        ),
    )


__all__ = [
    "Base",
    "Budget",
    "Category",
    "Recurrence",
    "RecurrenceFrequency",
    "Transaction",
    "TransactionType",
    "User",
    "new_id",
]
