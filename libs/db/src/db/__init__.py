"""db: shared database library (SQLAlchemy/Alembic).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models in ``db.models.ledger`` (re-exported for convenience)
- ``DatabaseClient`` in ``db.client``
"""

from __future__ import annotations

from .client import DatabaseClient
from .models.ledger import (
    Base,
    Budget,
    Category,
    Recurrence,
    RecurrenceFrequency,
    Transaction,
    TransactionType,
    User,
)

# Re-export SQLAlchemy metadata for Alembic's env.py
metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "DatabaseClient",
    "Budget",
    "Category",
    "Recurrence",
    "RecurrenceFrequency",
    "Transaction",
    "TransactionType",
    "User",
]
