"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the personal-ledger models used by ``finance_ledger``.
"""

from .ledger import (
    Base,
    Budget,
    Category,
    Recurrence,
    RecurrenceFrequency,
    Transaction,
    TransactionType,
    User,
)

__all__ = [
    "Base",
    "Budget",
    "Category",
    "Recurrence",
    "RecurrenceFrequency",
    "Transaction",
    "TransactionType",
    "User",
]
