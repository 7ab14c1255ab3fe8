"""Budget ledger: keeps ``budgets.spent`` in step with EXPENSE transactions.

Invariant
---------
For every budget row keyed by ``(user_id, category_id, month, year)``,
``spent`` equals the sum of EXPENSE transaction amounts with the same key,
provided every transaction write calls :func:`apply_delta` symmetrically in
the same database transaction (add on create, subtract-old/add-new on update,
subtract on delete). :func:`recompute` restores the invariant from scratch.

Budgets are opt-in per category and month: a delta for a key with no budget
row is dropped, and no row is created for it.

All functions take a caller-owned ``Session``; commit/rollback happens in the
caller's ``session_scope``.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any

from db.models.ledger import Budget, Category, Transaction, TransactionType, new_id
from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from .errors import NotFoundError
from .logging_setup import get_logger
from .money import ZERO, to_money
from .schedule import month_bounds, month_key, previous_month

_logger = get_logger("finance_ledger.ledger")

_BUDGET_KEY = [Budget.user_id, Budget.category_id, Budget.month, Budget.year]


def upsert_insert(session: Session) -> Callable[..., Any]:
    """Return the dialect ``insert`` construct that supports ``ON CONFLICT``."""

    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"unsupported database dialect for upserts: {dialect}")


def apply_delta(
    session: Session,
    *,
    user_id: str,
    category_id: str,
    when: datetime,
    delta: Decimal,
) -> int:
    """Add ``delta`` (may be negative) to the matching budget's ``spent``.

    The adjustment is a single ``UPDATE ... SET spent = spent + :delta`` so
    concurrent writers serialize on the budget row instead of racing a
    read-modify-write. Returns the number of budget rows adjusted (0 or 1).
    """

    if delta == 0:
        return 0
    month, year = month_key(when)
    result = session.execute(
        update(Budget)
        .where(
            Budget.user_id == user_id,
            Budget.category_id == category_id,
            Budget.month == month,
            Budget.year == year,
        )
        .values(spent=Budget.spent + delta)
        .execution_options(synchronize_session="fetch")
    )
    touched = result.rowcount or 0
    if touched:
        _logger.debug(
            "apply_delta:applied user_id=%s category_id=%s month=%d year=%d delta=%s",
            user_id,
            category_id,
            month,
            year,
            delta,
        )
    else:
        _logger.debug(
            "apply_delta:no_budget user_id=%s category_id=%s month=%d year=%d",
            user_id,
            category_id,
            month,
            year,
        )
    return touched


def spent_for(
    session: Session,
    *,
    user_id: str,
    category_id: str,
    month: int,
    year: int,
) -> Decimal:
    """Exact sum of the caller's EXPENSE amounts in one category and month."""

    start, end = month_bounds(month, year)
    total = session.execute(
        select(func.sum(Transaction.amount)).where(
            Transaction.user_id == user_id,
            Transaction.category_id == category_id,
            Transaction.type == TransactionType.EXPENSE.value,
            Transaction.date >= start,
            Transaction.date < end,
        )
    ).scalar_one()
    return ZERO if total is None else to_money(total)


def month_budgets(session: Session, *, user_id: str, month: int, year: int) -> list[Budget]:
    return list(
        session.execute(
            select(Budget)
            .join(Category, Category.id == Budget.category_id)
            .where(Budget.user_id == user_id, Budget.month == month, Budget.year == year)
            .order_by(Category.name)
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )


def recompute(session: Session, *, user_id: str, month: int, year: int) -> list[Budget]:
    """Recalculate ``spent`` for every budget of one month from transactions.

    Runs as one correlated ``UPDATE`` so the rewrite is a single statement
    against the store. Returns the month's budgets ordered by category name.
    """

    start, end = month_bounds(month, year)
    expense_sum = (
        select(func.coalesce(func.sum(Transaction.amount), 0))
        .where(
            Transaction.user_id == Budget.user_id,
            Transaction.category_id == Budget.category_id,
            Transaction.type == TransactionType.EXPENSE.value,
            Transaction.date >= start,
            Transaction.date < end,
        )
        .correlate(Budget)
        .scalar_subquery()
    )
    result = session.execute(
        update(Budget)
        .where(Budget.user_id == user_id, Budget.month == month, Budget.year == year)
        .values(spent=expense_sum)
        .execution_options(synchronize_session=False)
    )
    _logger.info(
        "recompute:done user_id=%s month=%d year=%d budgets=%d",
        user_id,
        month,
        year,
        result.rowcount or 0,
    )
    return month_budgets(session, user_id=user_id, month=month, year=year)


def copy_forward(
    session: Session,
    *,
    user_id: str,
    target_month: int,
    target_year: int,
) -> list[Budget]:
    """Copy the previous month's budgets into the target month.

    New rows take the source ``amount`` with ``spent = 0``. Categories that
    already have a target-month budget are left untouched. Returns the
    target-month budget for every source category (created or pre-existing),
    ordered by category name. Raises ``NotFoundError`` when the previous month
    has no budgets.
    """

    source_month, source_year = previous_month(target_month, target_year)
    sources = month_budgets(session, user_id=user_id, month=source_month, year=source_year)
    if not sources:
        raise NotFoundError("No budgets found in previous month to copy")

    insert = upsert_insert(session)
    stmt = insert(Budget).values(
        [
            {
                "id": new_id(),
                "user_id": user_id,
                "category_id": src.category_id,
                "month": target_month,
                "year": target_year,
                "amount": src.amount,
                "spent": ZERO,
            }
            for src in sources
        ]
    )
    # Existing target-month budgets win; never overwrite their amount.
    result = session.execute(stmt.on_conflict_do_nothing(index_elements=_BUDGET_KEY))

    source_categories = {src.category_id for src in sources}
    copied = [
        b
        for b in month_budgets(session, user_id=user_id, month=target_month, year=target_year)
        if b.category_id in source_categories
    ]
    _logger.info(
        "copy_forward:done user_id=%s target_month=%d target_year=%d created=%d total=%d",
        user_id,
        target_month,
        target_year,
        result.rowcount or 0,
        len(copied),
    )
    return copied


__all__ = [
    "upsert_insert",
    "month_budgets",
    "apply_delta",
    "spent_for",
    "recompute",
    "copy_forward",
]
