"""Monthly budget operations built on the budget ledger."""

from __future__ import annotations

from db.models.ledger import Budget, new_id
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .categories import category_to_dict, require_category
from .errors import NotFoundError
from .ledger import copy_forward, month_budgets, recompute, spent_for, upsert_insert
from .logging_setup import get_logger
from .models import BudgetAmount, BudgetDict, BudgetListResult, BudgetPeriod, BudgetUpsert
from .money import money_sum, percent_of

_logger = get_logger("finance_ledger.budgets")


def budget_to_dict(row: Budget) -> BudgetDict:
    return {
        "id": row.id,
        "category_id": row.category_id,
        "month": row.month,
        "year": row.year,
        "amount": row.amount,
        "spent": row.spent,
        "remaining": row.amount - row.spent,
        "percent_used": percent_of(row.spent, row.amount),
        "category": category_to_dict(row.category),
    }


def _owned_budget(session: Session, *, user_id: str, budget_id: str) -> Budget:
    row = session.execute(
        select(Budget).where(Budget.id == budget_id, Budget.user_id == user_id)
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError("Budget not found")
    return row


def list_budgets(session: Session, *, user_id: str, period: BudgetPeriod) -> BudgetListResult:
    """Budgets of one month (by category name) with remaining/percent and totals."""

    rows = month_budgets(session, user_id=user_id, month=period.month, year=period.year)
    total_budgeted = money_sum(r.amount for r in rows)
    total_spent = money_sum(r.spent for r in rows)
    return {
        "budgets": [budget_to_dict(r) for r in rows],
        "total_budgeted": total_budgeted,
        "total_spent": total_spent,
        "remaining": total_budgeted - total_spent,
    }


def get_or_create_budget(session: Session, *, user_id: str, data: BudgetUpsert) -> BudgetDict:
    """Upsert the budget for a category/month and seed ``spent`` from reality.

    Both a new and an existing row end up with the given ``amount`` and
    ``spent`` recomputed from the month's EXPENSE transactions.
    """

    require_category(session, user_id=user_id, category_id=data.category_id)
    spent = spent_for(
        session,
        user_id=user_id,
        category_id=data.category_id,
        month=data.month,
        year=data.year,
    )

    insert = upsert_insert(session)
    stmt = insert(Budget).values(
        id=new_id(),
        user_id=user_id,
        category_id=data.category_id,
        month=data.month,
        year=data.year,
        amount=data.amount,
        spent=spent,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Budget.user_id, Budget.category_id, Budget.month, Budget.year],
        set_={
            "amount": stmt.excluded.amount,
            "spent": stmt.excluded.spent,
            "updated_at": func.now(),
        },
    )
    session.execute(stmt)

    row = session.execute(
        select(Budget)
        .where(
            Budget.user_id == user_id,
            Budget.category_id == data.category_id,
            Budget.month == data.month,
            Budget.year == data.year,
        )
        .execution_options(populate_existing=True)
    ).scalar_one()
    _logger.info(
        "get_or_create_budget:upserted user_id=%s budget_id=%s month=%d year=%d spent=%s",
        user_id,
        row.id,
        row.month,
        row.year,
        row.spent,
    )
    return budget_to_dict(row)


def update_budget(
    session: Session, *, user_id: str, budget_id: str, data: BudgetAmount
) -> BudgetDict:
    """Change a budget's limit; ``spent`` is left to the ledger."""

    row = _owned_budget(session, user_id=user_id, budget_id=budget_id)
    row.amount = data.amount
    session.flush()
    return budget_to_dict(row)


def delete_budget(session: Session, *, user_id: str, budget_id: str) -> BudgetDict:
    row = _owned_budget(session, user_id=user_id, budget_id=budget_id)
    deleted = budget_to_dict(row)
    session.delete(row)
    session.flush()
    return deleted


def copy_from_previous_month(
    session: Session, *, user_id: str, period: BudgetPeriod
) -> list[BudgetDict]:
    rows = copy_forward(
        session, user_id=user_id, target_month=period.month, target_year=period.year
    )
    return [budget_to_dict(r) for r in rows]


def recalculate_spent(session: Session, *, user_id: str, period: BudgetPeriod) -> list[BudgetDict]:
    rows = recompute(session, user_id=user_id, month=period.month, year=period.year)
    return [budget_to_dict(r) for r in rows]


__all__ = [
    "budget_to_dict",
    "list_budgets",
    "get_or_create_budget",
    "update_budget",
    "delete_budget",
    "copy_from_previous_month",
    "recalculate_spent",
]
