# ruff: noqa: I001
"""
Alembic environment for the finance ledger schema.

``DATABASE_URL`` (from the process or the nearest ``.env``) takes precedence
over ``sqlalchemy.url`` in alembic.ini. SQLite databases are migrated in batch
mode since SQLite cannot alter constraints in place.
"""

from __future__ import annotations

import os
from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import create_engine, pool
from dotenv import load_dotenv, find_dotenv

import db

config = context.config

# Tests drive Alembic with an in-memory Config and keep their own logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _database_url() -> str:
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set. Provide it via environment or set "
            "'sqlalchemy.url' in alembic.ini."
        )
    return url


def _configure(**kwargs: Any) -> None:
    context.configure(target_metadata=db.metadata, compare_type=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline(url: str) -> None:
    """Emit SQL for ``alembic upgrade --sql`` without connecting."""
    _configure(
        url=url,
        literal_binds=True,
        render_as_batch=url.startswith("sqlite"),
    )


def run_migrations_online(url: str) -> None:
    engine = create_engine(url, poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _configure(
                connection=connection,
                render_as_batch=connection.dialect.name == "sqlite",
            )
    finally:
        engine.dispose()


_url = _database_url()
if context.is_offline_mode():
    run_migrations_offline(_url)
else:
    run_migrations_online(_url)
