"""Transaction mutation engine.

Create, update and delete keep the budget ledger consistent by pairing every
transaction write with the matching :func:`~finance_ledger.ledger.apply_delta`
calls inside the caller's database transaction:

- create: EXPENSE adds its amount to its budget key;
- update: an EXPENSE's old contribution is reversed, fields are applied, and
  the result is re-applied if it is still an EXPENSE (this covers moves across
  categories and months as well as type flips);
- delete: an EXPENSE's contribution is reversed.

Ownership is checked before any write; a missing or foreign transaction or
category raises ``NotFoundError`` and nothing is changed.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Any

from db.models.ledger import Category, Transaction, TransactionType
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .categories import category_to_dict, require_category
from .errors import NotFoundError
from .ledger import apply_delta
from .logging_setup import get_logger
from .models import (
    SummaryByCategory,
    SummaryRange,
    SummaryResult,
    TransactionCreate,
    TransactionDict,
    TransactionUpdate,
)
from .money import ZERO, to_money

_logger = get_logger("finance_ledger.transactions")

# Fields whose change moves money between budget keys.
_LEDGER_FIELDS = frozenset({"category_id", "amount", "type", "date"})

_EXPENSE = TransactionType.EXPENSE.value
_INCOME = TransactionType.INCOME.value


def transaction_to_dict(row: Transaction) -> TransactionDict:
    return {
        "id": row.id,
        "category_id": row.category_id,
        "amount": row.amount,
        "type": row.type,
        "description": row.description,
        "date": row.date,
        "recurrence_id": row.recurrence_id,
        "category": category_to_dict(row.category),
    }


def _owned_transaction(session: Session, *, user_id: str, transaction_id: str) -> Transaction:
    # Row lock: concurrent updates of one transaction must not both reverse
    # the same old contribution.
    row = session.execute(
        select(Transaction)
        .where(Transaction.id == transaction_id, Transaction.user_id == user_id)
        .with_for_update(of=Transaction)
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError("Transaction not found")
    return row


def _contribute(session: Session, row: Transaction, sign: int) -> None:
    if row.type == _EXPENSE:
        apply_delta(
            session,
            user_id=row.user_id,
            category_id=row.category_id,
            when=row.date,
            delta=row.amount * sign,
        )


def record_transaction(
    session: Session,
    *,
    user_id: str,
    category_id: str,
    amount: Decimal,
    type: str,
    date: datetime,
    description: str | None = None,
    recurrence_id: str | None = None,
) -> Transaction:
    """Insert a transaction and apply its ledger contribution.

    Callers are responsible for having verified ``category_id`` ownership.
    """

    row = Transaction(
        user_id=user_id,
        category_id=category_id,
        amount=amount,
        type=type,
        description=description,
        date=date,
        recurrence_id=recurrence_id,
    )
    session.add(row)
    session.flush()
    _contribute(session, row, +1)
    return row


def create_transaction(
    session: Session, *, user_id: str, data: TransactionCreate
) -> TransactionDict:
    require_category(session, user_id=user_id, category_id=data.category_id)
    row = record_transaction(
        session,
        user_id=user_id,
        category_id=data.category_id,
        amount=data.amount,
        type=data.type.value,
        date=data.date,
        description=data.description,
    )
    _logger.info(
        "create_transaction:created user_id=%s transaction_id=%s type=%s",
        user_id,
        row.id,
        row.type,
    )
    return transaction_to_dict(row)


def get_transaction(session: Session, *, user_id: str, transaction_id: str) -> TransactionDict:
    row = session.execute(
        select(Transaction).where(
            Transaction.id == transaction_id, Transaction.user_id == user_id
        )
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError("Transaction not found")
    return transaction_to_dict(row)


def _normalized(changes: dict[str, Any]) -> dict[str, Any]:
    return {k: (v.value if isinstance(v, enum.Enum) else v) for k, v in changes.items()}


def update_transaction(
    session: Session,
    *,
    user_id: str,
    transaction_id: str,
    data: TransactionUpdate,
) -> TransactionDict:
    """Apply a partial update and move the ledger contribution accordingly."""

    row = _owned_transaction(session, user_id=user_id, transaction_id=transaction_id)
    changes = _normalized(data.changes())
    if "category_id" in changes:
        require_category(session, user_id=user_id, category_id=changes["category_id"])

    moves_money = any(
        field in _LEDGER_FIELDS and getattr(row, field) != value
        for field, value in changes.items()
    )

    if moves_money:
        _contribute(session, row, -1)
    for field, value in changes.items():
        setattr(row, field, value)
    session.flush()
    # The joined category still points at the old row after a category move.
    session.expire(row, ["category"])
    if moves_money:
        _contribute(session, row, +1)

    _logger.info(
        "update_transaction:updated user_id=%s transaction_id=%s fields=%s ledger=%s",
        user_id,
        row.id,
        ",".join(sorted(changes)) or "-",
        "moved" if moves_money else "unchanged",
    )
    return transaction_to_dict(row)


def delete_transaction(
    session: Session, *, user_id: str, transaction_id: str
) -> TransactionDict:
    row = _owned_transaction(session, user_id=user_id, transaction_id=transaction_id)
    deleted = transaction_to_dict(row)
    _contribute(session, row, -1)
    session.delete(row)
    session.flush()
    _logger.info("delete_transaction:deleted user_id=%s transaction_id=%s", user_id, deleted["id"])
    return deleted


def get_summary(session: Session, *, user_id: str, period: SummaryRange) -> SummaryResult:
    """Income/expense totals and per-category expenses over an inclusive range."""

    in_range = (
        Transaction.user_id == user_id,
        Transaction.date >= period.start,
        Transaction.date <= period.end,
    )

    totals = dict(
        session.execute(
            select(Transaction.type, func.sum(Transaction.amount))
            .where(*in_range)
            .group_by(Transaction.type)
        ).all()
    )
    income = to_money(totals.get(_INCOME) or ZERO)
    expenses = to_money(totals.get(_EXPENSE) or ZERO)

    per_category = session.execute(
        select(Category, func.sum(Transaction.amount).label("total"))
        .join(Transaction, Transaction.category_id == Category.id)
        .where(*in_range, Transaction.type == _EXPENSE)
        .group_by(Category.id)
        .order_by(func.sum(Transaction.amount).desc(), Category.name)
    ).all()
    by_category: list[SummaryByCategory] = [
        {"category": category_to_dict(cat), "amount": to_money(total)}
        for cat, total in per_category
    ]

    return {
        "total_income": income,
        "total_expenses": expenses,
        "net_savings": income - expenses,
        "by_category": by_category,
    }


__all__ = [
    "transaction_to_dict",
    "record_transaction",
    "create_transaction",
    "get_transaction",
    "update_transaction",
    "delete_transaction",
    "get_summary",
]
