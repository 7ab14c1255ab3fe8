"""SQLAlchemy engine/session helpers for the workspace.

Usage
-----
from db.client import DatabaseClient

client = DatabaseClient.from_url()  # reads DATABASE_URL
with client.session_scope() as s:
    s.execute(...)
client.close()

The client is constructed explicitly at process start and closed explicitly at
shutdown; there is no module-level engine.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models.ledger import Base


def _database_url(override: str | None = None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    # SQLite ignores FK clauses (RESTRICT / SET NULL) unless enabled per connection
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _):  # pragma: no cover - tiny bridge
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()


class DatabaseClient:
    """Owns one engine and the session factory bound to it."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_maker: sessionmaker[Session] = sessionmaker(
            bind=engine, expire_on_commit=False, class_=Session
        )

    @classmethod
    def from_url(cls, database_url: str | None = None, **engine_kwargs: Any) -> DatabaseClient:
        """Create a client for ``database_url`` (falls back to ``$DATABASE_URL``)."""

        url = _database_url(database_url)
        engine = create_engine(url, pool_pre_ping=True, **engine_kwargs)
        if engine.dialect.name == "sqlite":
            _enable_sqlite_foreign_keys(engine)
        return cls(engine)

    @property
    def url(self) -> str:
        return self.engine.url.render_as_string(hide_password=True)

    def session(self) -> Session:
        """Return a new session bound to this client's engine."""

        return self._session_maker()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""

        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        """Create every table from ORM metadata (dev/test; production uses Alembic)."""

        Base.metadata.create_all(bind=self.engine)

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> DatabaseClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


__all__ = [
    "DatabaseClient",
]
