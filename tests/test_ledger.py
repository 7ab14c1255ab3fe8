# ruff: noqa
"""Budget ledger invariants: incremental deltas always agree with a recompute."""

import random
from datetime import datetime
from decimal import Decimal

from db.models.ledger import Budget
from sqlalchemy import func, select

from finance_ledger.ledger import apply_delta, recompute, spent_for
from tests.helpers.db import category_id, stored_spent


# ---- Helpers ----------------------------------------------------------------


def _budget(ledger, user, name, month, year, amount="100.00"):
    return ledger.get_or_create_budget(
        user["id"], category_id=category_id(user, name), month=month, year=year, amount=amount
    )


def _expense(ledger, user, name, amount, when):
    return ledger.create_transaction(
        user["id"], category_id=category_id(user, name), amount=amount, type="EXPENSE", date=when
    )


# ---- apply_delta ------------------------------------------------------------


def test_delta_without_budget_is_dropped(client, user):
    food = category_id(user, "Food & Dining")
    with client.session_scope() as s:
        touched = apply_delta(
            s, user_id=user["id"], category_id=food, when=datetime(2024, 6, 5), delta=Decimal("5.00")
        )
        assert touched == 0
        assert s.execute(select(func.count(Budget.id))).scalar_one() == 0


def test_zero_delta_is_a_noop(client, ledger, user):
    b = _budget(ledger, user, "Food & Dining", 6, 2024)
    with client.session_scope() as s:
        touched = apply_delta(
            s,
            user_id=user["id"],
            category_id=b["category_id"],
            when=datetime(2024, 6, 5),
            delta=Decimal("0.00"),
        )
    assert touched == 0
    assert stored_spent(client, b["id"]) == Decimal("0.00")


def test_delta_is_keyed_by_month_of_the_date(client, ledger, user):
    june = _budget(ledger, user, "Food & Dining", 6, 2024)
    july = _budget(ledger, user, "Food & Dining", 7, 2024)
    with client.session_scope() as s:
        apply_delta(
            s,
            user_id=user["id"],
            category_id=june["category_id"],
            when=datetime(2024, 6, 30, 23, 59, 59),
            delta=Decimal("12.34"),
        )
    assert stored_spent(client, june["id"]) == Decimal("12.34")
    assert stored_spent(client, july["id"]) == Decimal("0.00")


def test_expense_without_budget_creates_no_budget_row(client, ledger, user):
    _expense(ledger, user, "Shopping", "42.00", datetime(2024, 6, 10))
    with client.session_scope() as s:
        assert s.execute(select(func.count(Budget.id))).scalar_one() == 0


def test_last_instant_of_month_counts_in_both_paths(client, ledger, user):
    b = _budget(ledger, user, "Food & Dining", 1, 2024)
    _expense(ledger, user, "Food & Dining", "9.99", datetime(2024, 1, 31, 23, 59, 59, 500000))
    assert stored_spent(client, b["id"]) == Decimal("9.99")
    with client.session_scope() as s:
        assert spent_for(
            s, user_id=user["id"], category_id=b["category_id"], month=1, year=2024
        ) == Decimal("9.99")
    [rebuilt] = ledger.recalculate_spent(user["id"], month=1, year=2024)
    assert rebuilt["spent"] == Decimal("9.99")


# ---- recompute --------------------------------------------------------------


def test_recompute_repairs_drift_and_ignores_income(client, ledger, user):
    food = _budget(ledger, user, "Food & Dining", 3, 2024)
    _expense(ledger, user, "Food & Dining", "20.00", datetime(2024, 3, 2))
    _expense(ledger, user, "Food & Dining", "5.50", datetime(2024, 3, 28))
    ledger.create_transaction(
        user["id"],
        category_id=category_id(user, "Food & Dining"),
        amount="1000.00",
        type="INCOME",
        date=datetime(2024, 3, 15),
    )
    # Expense in another month must not count.
    _expense(ledger, user, "Food & Dining", "99.00", datetime(2024, 4, 1))

    with client.session_scope() as s:
        s.get(Budget, food["id"]).spent = Decimal("999.99")
    assert stored_spent(client, food["id"]) == Decimal("999.99")

    rows = ledger.recalculate_spent(user["id"], month=3, year=2024)
    assert [r["spent"] for r in rows] == [Decimal("25.50")]
    assert stored_spent(client, food["id"]) == Decimal("25.50")


def test_recompute_sets_zero_for_budget_without_expenses(ledger, user):
    _budget(ledger, user, "Health", 5, 2024)
    rows = ledger.recalculate_spent(user["id"], month=5, year=2024)
    assert rows[0]["spent"] == Decimal("0.00")
    assert rows[0]["remaining"] == Decimal("100.00")


def test_recompute_is_scoped_to_the_user(client, ledger, user, other_user):
    mine = _budget(ledger, user, "Food & Dining", 6, 2024)
    theirs = _budget(ledger, other_user, "Food & Dining", 6, 2024)
    _expense(ledger, other_user, "Food & Dining", "30.00", datetime(2024, 6, 1))
    with client.session_scope() as s:
        recompute(s, user_id=user["id"], month=6, year=2024)
    assert stored_spent(client, mine["id"]) == Decimal("0.00")
    assert stored_spent(client, theirs["id"]) == Decimal("30.00")


# ---- Randomized consistency --------------------------------------------------


def test_random_mutations_agree_with_recompute(client, ledger, user):
    rng = random.Random(20240601)
    names = ["Food & Dining", "Transportation"]
    periods = [(5, 2024), (6, 2024)]
    budgets = [_budget(ledger, user, n, m, y) for n in names for (m, y) in periods]
    dates = [
        datetime(2024, 5, 1),
        datetime(2024, 5, 31, 23, 59, 59),
        datetime(2024, 6, 1),
        datetime(2024, 6, 15, 8, 30),
        datetime(2024, 7, 1),  # outside every budget
    ]

    live: list[str] = []
    for _ in range(60):
        op = rng.choice(["create", "create", "update", "delete"]) if live else "create"
        if op == "create":
            tx = ledger.create_transaction(
                user["id"],
                category_id=category_id(user, rng.choice(names)),
                amount=f"{rng.randint(1, 20000) / 100:.2f}",
                type=rng.choice(["EXPENSE", "EXPENSE", "INCOME"]),
                date=rng.choice(dates),
            )
            live.append(tx["id"])
        elif op == "update":
            tx_id = rng.choice(live)
            fields = rng.sample(["category_id", "amount", "type", "date", "description"], k=2)
            changes = {}
            for f in fields:
                if f == "category_id":
                    changes[f] = category_id(user, rng.choice(names))
                elif f == "amount":
                    changes[f] = f"{rng.randint(1, 20000) / 100:.2f}"
                elif f == "type":
                    changes[f] = rng.choice(["EXPENSE", "INCOME"])
                elif f == "date":
                    changes[f] = rng.choice(dates)
                else:
                    changes[f] = f"note {rng.randint(0, 9)}"
            ledger.update_transaction(user["id"], tx_id, **changes)
        else:
            tx_id = live.pop(rng.randrange(len(live)))
            ledger.delete_transaction(user["id"], tx_id)

    incremental = {b["id"]: stored_spent(client, b["id"]) for b in budgets}
    rebuilt = {}
    for m, y in periods:
        for row in ledger.recalculate_spent(user["id"], month=m, year=y):
            rebuilt[row["id"]] = row["spent"]
    assert incremental == rebuilt
