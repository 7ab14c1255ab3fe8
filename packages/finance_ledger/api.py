"""Public operation surface for the ``finance_ledger`` package.

:class:`FinanceLedger` binds the service functions to an explicitly
constructed :class:`~db.client.DatabaseClient` and a clock. Every method:

1. validates its input (``InvalidInputError`` before touching the store);
2. runs the whole operation inside one ``session_scope()``, so multi-record
   writes (transaction + budget, or recurrence + transaction + budget) commit
   together or not at all;
3. returns plain mappings built while the session was open.

All methods take the authenticated ``user_id`` first; establishing that id is
the caller's job.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from db.client import DatabaseClient

from . import budgets, categories, recurrences, transactions, users
from .models import (
    BudgetAmount,
    BudgetDict,
    BudgetListResult,
    BudgetPeriod,
    BudgetUpsert,
    CategoryCreate,
    CategoryDict,
    CategoryUpdate,
    CategoryWithCountDict,
    ProcessDueResult,
    RecurrenceCreate,
    RecurrenceDetail,
    RecurrenceDict,
    RecurrenceListItem,
    RecurrenceUpdate,
    SummaryRange,
    SummaryResult,
    TransactionCreate,
    TransactionDict,
    TransactionUpdate,
    UpcomingRecurrence,
    UpcomingWindow,
    parse_input,
)
from .schedule import to_naive_utc, utcnow
from .users import UserDict


class FinanceLedger:
    """Transaction, budget and recurrence operations for authenticated users."""

    def __init__(
        self,
        client: DatabaseClient,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.client = client
        self._clock = clock

    def _now(self, now: datetime | None) -> datetime:
        return to_naive_utc(now if now is not None else self._clock())

    # ---- users & categories ----------------------------------------------

    def register_user(self, email: str, name: str | None = None) -> UserDict:
        with self.client.session_scope() as s:
            return users.register_user(s, email=email, name=name)

    def list_categories(self, user_id: str) -> list[CategoryWithCountDict]:
        with self.client.session_scope() as s:
            return categories.list_categories(s, user_id=user_id)

    def create_category(self, user_id: str, **fields: Any) -> CategoryDict:
        data = parse_input(CategoryCreate, fields)
        with self.client.session_scope() as s:
            return categories.create_category(s, user_id=user_id, data=data)

    def update_category(self, user_id: str, category_id: str, **changes: Any) -> CategoryDict:
        data = parse_input(CategoryUpdate, changes)
        with self.client.session_scope() as s:
            return categories.update_category(
                s, user_id=user_id, category_id=category_id, data=data
            )

    def delete_category(self, user_id: str, category_id: str) -> CategoryDict:
        with self.client.session_scope() as s:
            return categories.delete_category(s, user_id=user_id, category_id=category_id)

    # ---- transactions ----------------------------------------------------

    def create_transaction(
        self,
        user_id: str,
        *,
        category_id: str,
        amount: Any,
        type: Any,
        date: Any,
        description: str | None = None,
    ) -> TransactionDict:
        data = parse_input(
            TransactionCreate,
            {
                "category_id": category_id,
                "amount": amount,
                "type": type,
                "date": date,
                "description": description,
            },
        )
        with self.client.session_scope() as s:
            return transactions.create_transaction(s, user_id=user_id, data=data)

    def get_transaction(self, user_id: str, transaction_id: str) -> TransactionDict:
        with self.client.session_scope() as s:
            return transactions.get_transaction(s, user_id=user_id, transaction_id=transaction_id)

    def update_transaction(
        self, user_id: str, transaction_id: str, **changes: Any
    ) -> TransactionDict:
        """Partial update; pass only the fields to change."""

        data = parse_input(TransactionUpdate, changes)
        with self.client.session_scope() as s:
            return transactions.update_transaction(
                s, user_id=user_id, transaction_id=transaction_id, data=data
            )

    def delete_transaction(self, user_id: str, transaction_id: str) -> TransactionDict:
        with self.client.session_scope() as s:
            return transactions.delete_transaction(
                s, user_id=user_id, transaction_id=transaction_id
            )

    def get_summary(self, user_id: str, *, start: Any, end: Any) -> SummaryResult:
        period = parse_input(SummaryRange, {"start": start, "end": end})
        with self.client.session_scope() as s:
            return transactions.get_summary(s, user_id=user_id, period=period)

    # ---- budgets ---------------------------------------------------------

    def list_budgets(self, user_id: str, *, month: int, year: int) -> BudgetListResult:
        period = parse_input(BudgetPeriod, {"month": month, "year": year})
        with self.client.session_scope() as s:
            return budgets.list_budgets(s, user_id=user_id, period=period)

    def get_or_create_budget(
        self,
        user_id: str,
        *,
        category_id: str,
        month: int,
        year: int,
        amount: Any = 0,
    ) -> BudgetDict:
        data = parse_input(
            BudgetUpsert,
            {"category_id": category_id, "month": month, "year": year, "amount": amount},
        )
        with self.client.session_scope() as s:
            return budgets.get_or_create_budget(s, user_id=user_id, data=data)

    def update_budget(self, user_id: str, budget_id: str, *, amount: Any) -> BudgetDict:
        data = parse_input(BudgetAmount, {"amount": amount})
        with self.client.session_scope() as s:
            return budgets.update_budget(s, user_id=user_id, budget_id=budget_id, data=data)

    def delete_budget(self, user_id: str, budget_id: str) -> BudgetDict:
        with self.client.session_scope() as s:
            return budgets.delete_budget(s, user_id=user_id, budget_id=budget_id)

    def copy_budgets_from_previous_month(
        self, user_id: str, *, target_month: int, target_year: int
    ) -> list[BudgetDict]:
        period = parse_input(BudgetPeriod, {"month": target_month, "year": target_year})
        with self.client.session_scope() as s:
            return budgets.copy_from_previous_month(s, user_id=user_id, period=period)

    def recalculate_spent(self, user_id: str, *, month: int, year: int) -> list[BudgetDict]:
        period = parse_input(BudgetPeriod, {"month": month, "year": year})
        with self.client.session_scope() as s:
            return budgets.recalculate_spent(s, user_id=user_id, period=period)

    # ---- recurrences -----------------------------------------------------

    def create_recurrence(
        self,
        user_id: str,
        *,
        category_id: str,
        amount: Any,
        type: Any,
        frequency: Any,
        start_date: Any,
        end_date: Any = None,
        description: str | None = None,
    ) -> RecurrenceDict:
        data = parse_input(
            RecurrenceCreate,
            {
                "category_id": category_id,
                "amount": amount,
                "type": type,
                "frequency": frequency,
                "start_date": start_date,
                "end_date": end_date,
                "description": description,
            },
        )
        with self.client.session_scope() as s:
            return recurrences.create_recurrence(s, user_id=user_id, data=data)

    def update_recurrence(self, user_id: str, recurrence_id: str, **changes: Any) -> RecurrenceDict:
        """Partial update; ``start_date`` is rejected as an unknown field."""

        data = parse_input(RecurrenceUpdate, changes)
        with self.client.session_scope() as s:
            return recurrences.update_recurrence(
                s, user_id=user_id, recurrence_id=recurrence_id, data=data
            )

    def delete_recurrence(self, user_id: str, recurrence_id: str) -> RecurrenceDict:
        with self.client.session_scope() as s:
            return recurrences.delete_recurrence(s, user_id=user_id, recurrence_id=recurrence_id)

    def get_recurrence(self, user_id: str, recurrence_id: str) -> RecurrenceDetail:
        with self.client.session_scope() as s:
            return recurrences.get_recurrence(s, user_id=user_id, recurrence_id=recurrence_id)

    def list_recurrences(
        self, user_id: str, *, is_active: bool | None = None
    ) -> list[RecurrenceListItem]:
        with self.client.session_scope() as s:
            return recurrences.list_recurrences(s, user_id=user_id, is_active=is_active)

    def process_due(self, user_id: str, *, now: datetime | None = None) -> ProcessDueResult:
        """Materialize one occurrence of every due recurrence (one atomic batch)."""

        at = self._now(now)
        with self.client.session_scope() as s:
            return recurrences.process_due(s, user_id=user_id, now=at)

    def get_upcoming(
        self, user_id: str, *, days: int = 30, now: datetime | None = None
    ) -> list[UpcomingRecurrence]:
        window = parse_input(UpcomingWindow, {"days": days})
        at = self._now(now)
        with self.client.session_scope() as s:
            return recurrences.get_upcoming(s, user_id=user_id, now=at, window=window)


__all__ = ["FinanceLedger"]
