"""Runtime settings read from the environment.

Entrypoints load a local ``.env`` (python-dotenv, never overriding variables
that are already set) before calling :meth:`Settings.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_UPCOMING_DAYS = 30


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str | None
    log_level: str | None
    upcoming_days: int = DEFAULT_UPCOMING_DAYS

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            log_level=os.getenv("FINANCE_LEDGER_LOG_LEVEL") or None,
            upcoming_days=_env_int("FINANCE_LEDGER_UPCOMING_DAYS", DEFAULT_UPCOMING_DAYS),
        )


__all__ = ["DEFAULT_UPCOMING_DAYS", "Settings"]
