"""Recurring transaction templates and the due-recurrence processor.

``process_due`` materializes at most one occurrence per due recurrence per
call. The generated transaction is dated at the recurrence's own due date
(not the processing clock), so a template that is several periods behind is
caught up one period per invocation instead of being fast-forwarded. Calling
it again before anything new falls due selects nothing.

The whole batch (transaction inserts, ledger deltas and due-date advances)
runs inside the caller's single database transaction. Due rows are selected
``FOR UPDATE SKIP LOCKED`` where the backend supports it, so two overlapping
invocations for the same user cannot both process one recurrence.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta
from typing import Any

from db.models.ledger import Recurrence, Transaction
from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from .categories import category_to_dict, require_category
from .errors import InvalidInputError, NotFoundError
from .logging_setup import get_logger
from .models import (
    ProcessDueResult,
    ProcessedRecurrence,
    RecurrenceCreate,
    RecurrenceDetail,
    RecurrenceDict,
    RecurrenceListItem,
    RecurrenceUpdate,
    UpcomingRecurrence,
    UpcomingWindow,
)
from .schedule import days_until, next_due_date
from .transactions import record_transaction, transaction_to_dict

_logger = get_logger("finance_ledger.recurrences")

_RECENT_TRANSACTIONS = 10


def recurrence_to_dict(row: Recurrence) -> RecurrenceDict:
    return {
        "id": row.id,
        "category_id": row.category_id,
        "amount": row.amount,
        "type": row.type,
        "description": row.description,
        "frequency": row.frequency,
        "start_date": row.start_date,
        "end_date": row.end_date,
        "next_due_date": row.next_due_date,
        "is_active": row.is_active,
        "category": category_to_dict(row.category),
    }


def _owned_recurrence(session: Session, *, user_id: str, recurrence_id: str) -> Recurrence:
    row = session.execute(
        select(Recurrence).where(Recurrence.id == recurrence_id, Recurrence.user_id == user_id)
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError("Recurrence not found")
    return row


def create_recurrence(
    session: Session, *, user_id: str, data: RecurrenceCreate
) -> RecurrenceDict:
    """Create an active template whose first occurrence is due on ``start_date``."""

    require_category(session, user_id=user_id, category_id=data.category_id)
    row = Recurrence(
        user_id=user_id,
        category_id=data.category_id,
        amount=data.amount,
        type=data.type.value,
        description=data.description,
        frequency=data.frequency.value,
        start_date=data.start_date,
        end_date=data.end_date,
        next_due_date=data.start_date,
        is_active=True,
    )
    session.add(row)
    session.flush()
    _logger.info(
        "create_recurrence:created user_id=%s recurrence_id=%s frequency=%s",
        user_id,
        row.id,
        row.frequency,
    )
    return recurrence_to_dict(row)


def update_recurrence(
    session: Session,
    *,
    user_id: str,
    recurrence_id: str,
    data: RecurrenceUpdate,
) -> RecurrenceDict:
    """Apply a partial update; ``is_active`` may be toggled either way by hand."""

    row = _owned_recurrence(session, user_id=user_id, recurrence_id=recurrence_id)
    changes: dict[str, Any] = {
        k: (v.value if isinstance(v, enum.Enum) else v) for k, v in data.changes().items()
    }
    end_date = changes.get("end_date")
    if end_date is not None and end_date < row.start_date:
        raise InvalidInputError("end_date: end_date must not be before start_date")
    if "category_id" in changes:
        require_category(session, user_id=user_id, category_id=changes["category_id"])
    for field, value in changes.items():
        setattr(row, field, value)
    session.flush()
    session.expire(row, ["category"])
    return recurrence_to_dict(row)


def delete_recurrence(session: Session, *, user_id: str, recurrence_id: str) -> RecurrenceDict:
    """Delete a template; transactions it generated survive without the back-reference."""

    row = _owned_recurrence(session, user_id=user_id, recurrence_id=recurrence_id)
    deleted = recurrence_to_dict(row)
    session.execute(
        update(Transaction)
        .where(Transaction.recurrence_id == row.id)
        .values(recurrence_id=None)
        .execution_options(synchronize_session="fetch")
    )
    session.delete(row)
    session.flush()
    return deleted


def get_recurrence(session: Session, *, user_id: str, recurrence_id: str) -> RecurrenceDetail:
    row = _owned_recurrence(session, user_id=user_id, recurrence_id=recurrence_id)
    recent = (
        session.execute(
            select(Transaction)
            .where(Transaction.recurrence_id == row.id, Transaction.user_id == user_id)
            .order_by(Transaction.date.desc())
            .limit(_RECENT_TRANSACTIONS)
        )
        .scalars()
        .all()
    )
    return {**recurrence_to_dict(row), "transactions": [transaction_to_dict(t) for t in recent]}


def list_recurrences(
    session: Session, *, user_id: str, is_active: bool | None = None
) -> list[RecurrenceListItem]:
    """All templates by next due date, each with its generated-transaction count."""

    counts = (
        select(Transaction.recurrence_id, func.count(Transaction.id).label("n"))
        .where(Transaction.user_id == user_id, Transaction.recurrence_id.is_not(None))
        .group_by(Transaction.recurrence_id)
        .subquery()
    )
    stmt = (
        select(Recurrence, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.recurrence_id == Recurrence.id)
        .where(Recurrence.user_id == user_id)
        .order_by(Recurrence.next_due_date, Recurrence.id)
    )
    if is_active is not None:
        stmt = stmt.where(Recurrence.is_active.is_(is_active))
    return [
        {**recurrence_to_dict(rec), "transaction_count": int(n)}
        for rec, n in session.execute(stmt).all()
    ]


def process_due(session: Session, *, user_id: str, now: datetime) -> ProcessDueResult:
    """Generate one transaction for every recurrence due at ``now``.

    Due means active, ``next_due_date <= now`` and no ``end_date`` before
    ``now``. Each selected template is advanced by one period; it is
    deactivated when the following due date would fall after ``end_date``.
    """

    due = (
        session.execute(
            select(Recurrence)
            .where(
                Recurrence.user_id == user_id,
                Recurrence.is_active.is_(True),
                Recurrence.next_due_date <= now,
                or_(Recurrence.end_date.is_(None), Recurrence.end_date >= now),
            )
            .order_by(Recurrence.next_due_date, Recurrence.id)
            .with_for_update(of=Recurrence, skip_locked=True)
        )
        .scalars()
        .all()
    )

    created: list[ProcessedRecurrence] = []
    for rec in due:
        due_at = rec.next_due_date
        tx = record_transaction(
            session,
            user_id=user_id,
            category_id=rec.category_id,
            amount=rec.amount,
            type=rec.type,
            date=due_at,
            description=rec.description,
            recurrence_id=rec.id,
        )

        candidate = next_due_date(due_at, rec.frequency)
        rec.next_due_date = candidate
        rec.is_active = not (rec.end_date is not None and candidate > rec.end_date)
        if not rec.is_active:
            _logger.info(
                "process_due:deactivated recurrence_id=%s end_date=%s",
                rec.id,
                rec.end_date.isoformat() if rec.end_date else None,
            )

        created.append({"recurrence_id": rec.id, "transaction_id": tx.id, "amount": rec.amount})
    session.flush()

    _logger.info(
        "process_due:done user_id=%s now=%s processed=%d",
        user_id,
        now.isoformat(),
        len(created),
    )
    return {"processed": len(created), "transactions": created}


def get_upcoming(
    session: Session, *, user_id: str, now: datetime, window: UpcomingWindow
) -> list[UpcomingRecurrence]:
    """Active templates due within ``window.days`` of ``now`` (overdue ones included)."""

    horizon = now + timedelta(days=window.days)
    rows = (
        session.execute(
            select(Recurrence)
            .where(
                Recurrence.user_id == user_id,
                Recurrence.is_active.is_(True),
                Recurrence.next_due_date <= horizon,
            )
            .order_by(Recurrence.next_due_date, Recurrence.id)
        )
        .scalars()
        .all()
    )
    return [
        {**recurrence_to_dict(r), "days_until_due": days_until(r.next_due_date, now)}
        for r in rows
    ]


__all__ = [
    "recurrence_to_dict",
    "create_recurrence",
    "update_recurrence",
    "delete_recurrence",
    "get_recurrence",
    "list_recurrences",
    "process_due",
    "get_upcoming",
]
