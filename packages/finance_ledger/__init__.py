"""Public interface for the ``finance_ledger`` package.

This module exposes the operation facade, the error taxonomy and the input
models as the stable import surface. There is no runtime logic here, only
symbol re-exports.
"""

from .api import FinanceLedger
from .errors import (
    ConflictError,
    InvalidInputError,
    LedgerError,
    NotFoundError,
    PreconditionFailedError,
)
from .models import (
    BudgetAmount,
    BudgetPeriod,
    BudgetUpsert,
    CategoryCreate,
    CategoryUpdate,
    RecurrenceCreate,
    RecurrenceUpdate,
    SummaryRange,
    TransactionCreate,
    TransactionUpdate,
    UpcomingWindow,
)
from .schedule import Frequency, next_due_date

__all__ = [
    # Facade
    "FinanceLedger",
    # Errors
    "LedgerError",
    "NotFoundError",
    "ConflictError",
    "PreconditionFailedError",
    "InvalidInputError",
    # Inputs
    "TransactionCreate",
    "TransactionUpdate",
    "SummaryRange",
    "BudgetPeriod",
    "BudgetUpsert",
    "BudgetAmount",
    "RecurrenceCreate",
    "RecurrenceUpdate",
    "UpcomingWindow",
    "CategoryCreate",
    "CategoryUpdate",
    # Scheduling
    "Frequency",
    "next_due_date",
]
