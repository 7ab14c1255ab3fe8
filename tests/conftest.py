"""Pytest configuration for test isolation.

Every test gets its own file-backed SQLite database under ``tmp_path`` and a
fresh :class:`~finance_ledger.api.FinanceLedger` bound to it. Process
environment that the package reads (``DATABASE_URL`` and the
``FINANCE_LEDGER_*`` settings) is cleared so a developer's ``.env`` or shell
cannot leak into test behavior.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from db.client import DatabaseClient
from finance_ledger.api import FinanceLedger

from tests.helpers.db import bootstrap_sqlite_db


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DATABASE_URL", "FINANCE_LEDGER_LOG_LEVEL", "FINANCE_LEDGER_UPCOMING_DAYS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "ledger.sqlite3")


@pytest.fixture
def client(database_url: str) -> Iterator[DatabaseClient]:
    c = DatabaseClient.from_url(database_url)
    try:
        yield c
    finally:
        c.close()


@pytest.fixture
def ledger(client: DatabaseClient) -> FinanceLedger:
    return FinanceLedger(client)


@pytest.fixture
def user(ledger: FinanceLedger) -> dict:
    return dict(ledger.register_user("alice@example.com", "Alice"))


@pytest.fixture
def other_user(ledger: FinanceLedger) -> dict:
    return dict(ledger.register_user("bob@example.com", "Bob"))
