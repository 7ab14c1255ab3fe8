# ruff: noqa
from datetime import datetime
from decimal import Decimal

import pytest

from finance_ledger.api import FinanceLedger
from finance_ledger.errors import InvalidInputError, NotFoundError
from tests.helpers.db import category_id, stored_spent


# ---- Helpers ----------------------------------------------------------------


def _recurrence(ledger, user, *, name="Entertainment", amount="15.99", type="EXPENSE", **kw):
    kw.setdefault("frequency", "MONTHLY")
    kw.setdefault("start_date", datetime(2024, 1, 1))
    return ledger.create_recurrence(
        user["id"], category_id=category_id(user, name), amount=amount, type=type, **kw
    )


# ---- CRUD -------------------------------------------------------------------


def test_create_sets_next_due_to_start(ledger, user):
    rec = _recurrence(ledger, user, description="Streaming")
    assert rec["next_due_date"] == datetime(2024, 1, 1)
    assert rec["is_active"] is True
    assert rec["frequency"] == "MONTHLY"
    assert rec["amount"] == Decimal("15.99")
    assert rec["category"]["name"] == "Entertainment"


def test_create_rejects_end_before_start(ledger, user):
    with pytest.raises(InvalidInputError):
        _recurrence(ledger, user, end_date=datetime(2023, 12, 31))


def test_create_rejects_unknown_frequency(ledger, user):
    with pytest.raises(InvalidInputError):
        _recurrence(ledger, user, frequency="HOURLY")


def test_update_cannot_touch_start_date(ledger, user):
    rec = _recurrence(ledger, user)
    with pytest.raises(InvalidInputError):
        ledger.update_recurrence(user["id"], rec["id"], start_date=datetime(2024, 3, 1))


def test_update_fields_and_manual_toggle(ledger, user):
    rec = _recurrence(ledger, user)
    updated = ledger.update_recurrence(
        user["id"],
        rec["id"],
        amount="17.49",
        frequency="QUARTERLY",
        category_id=category_id(user, "Bills & Utilities"),
        is_active=False,
    )
    assert updated["amount"] == Decimal("17.49")
    assert updated["frequency"] == "QUARTERLY"
    assert updated["category"]["name"] == "Bills & Utilities"
    assert updated["is_active"] is False
    assert updated["next_due_date"] == datetime(2024, 1, 1)

    again = ledger.update_recurrence(user["id"], rec["id"], is_active=True)
    assert again["is_active"] is True


def test_list_and_get_with_generated_transactions(ledger, user):
    a = _recurrence(ledger, user, start_date=datetime(2024, 1, 1))
    b = _recurrence(
        ledger, user, name="Salary", type="INCOME", amount="2500", start_date=datetime(2024, 4, 1)
    )
    ledger.update_recurrence(user["id"], b["id"], is_active=False)
    ledger.process_due(user["id"], now=datetime(2024, 1, 15))
    ledger.process_due(user["id"], now=datetime(2024, 2, 15))

    listed = ledger.list_recurrences(user["id"])
    assert [r["id"] for r in listed] == [a["id"], b["id"]]
    assert [r["transaction_count"] for r in listed] == [2, 0]
    assert [r["id"] for r in ledger.list_recurrences(user["id"], is_active=False)] == [b["id"]]

    detail = ledger.get_recurrence(user["id"], a["id"])
    assert [t["date"] for t in detail["transactions"]] == [
        datetime(2024, 2, 1),
        datetime(2024, 1, 1),
    ]
    assert all(t["recurrence_id"] == a["id"] for t in detail["transactions"])


def test_foreign_recurrence_is_not_found(ledger, user, other_user):
    rec = _recurrence(ledger, user)
    with pytest.raises(NotFoundError, match="Recurrence not found"):
        ledger.get_recurrence(other_user["id"], rec["id"])
    with pytest.raises(NotFoundError):
        ledger.update_recurrence(other_user["id"], rec["id"], amount="1.00")
    with pytest.raises(NotFoundError):
        ledger.delete_recurrence(other_user["id"], rec["id"])


def test_delete_keeps_generated_transactions(ledger, user):
    rec = _recurrence(ledger, user)
    result = ledger.process_due(user["id"], now=datetime(2024, 1, 2))
    tx_id = result["transactions"][0]["transaction_id"]

    ledger.delete_recurrence(user["id"], rec["id"])
    tx = ledger.get_transaction(user["id"], tx_id)
    assert tx["recurrence_id"] is None
    assert ledger.list_recurrences(user["id"]) == []


# ---- process_due ------------------------------------------------------------


def test_process_due_creates_one_transaction_dated_at_due_date(ledger, user):
    rec = _recurrence(ledger, user, amount="15.99", start_date=datetime(2024, 1, 1))
    result = ledger.process_due(user["id"], now=datetime(2024, 2, 1))

    assert result["processed"] == 1
    [made] = result["transactions"]
    assert made["recurrence_id"] == rec["id"]
    assert made["amount"] == Decimal("15.99")

    tx = ledger.get_transaction(user["id"], made["transaction_id"])
    assert tx["date"] == datetime(2024, 1, 1)
    assert tx["type"] == "EXPENSE"
    assert ledger.get_recurrence(user["id"], rec["id"])["next_due_date"] == datetime(2024, 2, 1)


def test_second_call_before_next_due_is_a_noop(ledger, user):
    _recurrence(ledger, user, start_date=datetime(2024, 1, 1))
    assert ledger.process_due(user["id"], now=datetime(2024, 1, 15))["processed"] == 1
    assert ledger.process_due(user["id"], now=datetime(2024, 1, 15)) == {
        "processed": 0,
        "transactions": [],
    }


def test_overdue_recurrence_catches_up_one_period_per_call(ledger, user):
    rec = _recurrence(ledger, user, frequency="WEEKLY", start_date=datetime(2024, 1, 1))
    now = datetime(2024, 1, 31)
    dates = []
    while True:
        result = ledger.process_due(user["id"], now=now)
        if not result["processed"]:
            break
        tx_id = result["transactions"][0]["transaction_id"]
        dates.append(ledger.get_transaction(user["id"], tx_id)["date"])
    assert dates == [datetime(2024, 1, d) for d in (1, 8, 15, 22, 29)]
    assert ledger.get_recurrence(user["id"], rec["id"])["next_due_date"] == datetime(2024, 2, 5)


def test_generated_expense_flows_into_budget(client, ledger, user):
    budget = ledger.get_or_create_budget(
        user["id"], category_id=category_id(user, "Entertainment"), month=1, year=2024, amount="50"
    )
    _recurrence(ledger, user, amount="15.99", start_date=datetime(2024, 1, 1))
    ledger.process_due(user["id"], now=datetime(2024, 1, 1))
    assert stored_spent(client, budget["id"]) == Decimal("15.99")


def test_generated_income_skips_budget(client, ledger, user):
    budget = ledger.get_or_create_budget(
        user["id"], category_id=category_id(user, "Salary"), month=1, year=2024, amount="50"
    )
    _recurrence(ledger, user, name="Salary", type="INCOME", amount="2500.00")
    assert ledger.process_due(user["id"], now=datetime(2024, 1, 1))["processed"] == 1
    assert stored_spent(client, budget["id"]) == Decimal("0.00")


def test_deactivates_when_next_due_passes_end_date(ledger, user):
    rec = _recurrence(
        ledger, user, start_date=datetime(2024, 1, 1), end_date=datetime(2024, 2, 15)
    )
    assert ledger.process_due(user["id"], now=datetime(2024, 1, 1))["processed"] == 1
    assert ledger.get_recurrence(user["id"], rec["id"])["is_active"] is True

    assert ledger.process_due(user["id"], now=datetime(2024, 2, 1))["processed"] == 1
    after = ledger.get_recurrence(user["id"], rec["id"])
    assert after["next_due_date"] == datetime(2024, 3, 1)
    assert after["is_active"] is False

    # Inactive templates are never picked up again.
    assert ledger.process_due(user["id"], now=datetime(2024, 6, 1))["processed"] == 0


def test_end_date_already_passed_is_not_processed(ledger, user):
    rec = _recurrence(
        ledger, user, start_date=datetime(2024, 1, 1), end_date=datetime(2024, 1, 10)
    )
    assert ledger.process_due(user["id"], now=datetime(2024, 1, 11))["processed"] == 0
    assert ledger.get_recurrence(user["id"], rec["id"])["is_active"] is True


def test_inactive_and_foreign_recurrences_are_skipped(ledger, user, other_user):
    rec = _recurrence(ledger, user)
    ledger.update_recurrence(user["id"], rec["id"], is_active=False)
    _recurrence(ledger, other_user)
    assert ledger.process_due(user["id"], now=datetime(2024, 6, 1))["processed"] == 0


def test_process_due_uses_the_injected_clock(client, user):
    ledger = FinanceLedger(client, clock=lambda: datetime(2024, 1, 1, 8, 0))
    _recurrence(ledger, user, start_date=datetime(2024, 1, 1))
    assert ledger.process_due(user["id"])["processed"] == 1


# ---- upcoming ---------------------------------------------------------------


def test_upcoming_window_and_days_until_due(ledger, user):
    overdue = _recurrence(ledger, user, start_date=datetime(2024, 2, 25))
    today = _recurrence(ledger, user, name="Health", start_date=datetime(2024, 3, 1))
    soon = _recurrence(ledger, user, name="Shopping", start_date=datetime(2024, 3, 8))
    _recurrence(ledger, user, name="Transportation", start_date=datetime(2024, 5, 1))
    paused = _recurrence(ledger, user, name="Bills & Utilities", start_date=datetime(2024, 3, 2))
    ledger.update_recurrence(user["id"], paused["id"], is_active=False)

    upcoming = ledger.get_upcoming(user["id"], days=30, now=datetime(2024, 3, 1))
    assert [(r["id"], r["days_until_due"]) for r in upcoming] == [
        (overdue["id"], -5),
        (today["id"], 0),
        (soon["id"], 7),
    ]


def test_upcoming_window_is_bounded(ledger, user):
    with pytest.raises(InvalidInputError):
        ledger.get_upcoming(user["id"], days=0, now=datetime(2024, 1, 1))
    with pytest.raises(InvalidInputError):
        ledger.get_upcoming(user["id"], days=91, now=datetime(2024, 1, 1))


def test_update_rejects_end_before_stored_start(ledger, user):
    rec = _recurrence(ledger, user, start_date=datetime(2024, 3, 1))
    with pytest.raises(InvalidInputError, match="end_date"):
        ledger.update_recurrence(user["id"], rec["id"], end_date=datetime(2024, 2, 28))
    assert ledger.get_recurrence(user["id"], rec["id"])["end_date"] is None

    updated = ledger.update_recurrence(user["id"], rec["id"], end_date=datetime(2024, 3, 1))
    assert updated["end_date"] == datetime(2024, 3, 1)


# ---- Atomicity --------------------------------------------------------------


def test_failure_mid_batch_rolls_back_the_whole_run(client, ledger, user, monkeypatch):
    import finance_ledger.transactions as transactions

    budgets = [
        ledger.get_or_create_budget(
            user["id"], category_id=category_id(user, name), month=1, year=2024, amount="100"
        )
        for name in ("Entertainment", "Health")
    ]
    recs = [
        _recurrence(ledger, user, name="Entertainment", start_date=datetime(2024, 1, 1)),
        _recurrence(ledger, user, name="Health", amount="40.00", start_date=datetime(2024, 1, 2)),
    ]

    real_apply_delta = transactions.apply_delta
    calls = []

    def failing_on_second(session, **kw):
        calls.append(kw)
        if len(calls) == 2:
            raise RuntimeError("store went away")
        return real_apply_delta(session, **kw)

    monkeypatch.setattr(transactions, "apply_delta", failing_on_second)
    with pytest.raises(RuntimeError, match="store went away"):
        ledger.process_due(user["id"], now=datetime(2024, 1, 15))
    assert len(calls) == 2

    monkeypatch.setattr(transactions, "apply_delta", real_apply_delta)
    listed = {r["id"]: r for r in ledger.list_recurrences(user["id"])}
    assert [listed[r["id"]]["transaction_count"] for r in recs] == [0, 0]
    assert [listed[r["id"]]["next_due_date"] for r in recs] == [
        datetime(2024, 1, 1),
        datetime(2024, 1, 2),
    ]
    assert [stored_spent(client, b["id"]) for b in budgets] == [Decimal("0.00")] * 2

    # The same batch succeeds once the store is healthy again.
    assert ledger.process_due(user["id"], now=datetime(2024, 1, 15))["processed"] == 2
    assert [stored_spent(client, b["id"]) for b in budgets] == [
        Decimal("15.99"),
        Decimal("40.00"),
    ]
