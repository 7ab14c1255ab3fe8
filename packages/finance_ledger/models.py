"""Input models and result shapes for ``finance_ledger`` operations.

Inputs are pydantic models validated before any store interaction; a
``pydantic.ValidationError`` is converted to
:class:`~finance_ledger.errors.InvalidInputError` by :func:`parse_input`.
Results are plain ``TypedDict`` mappings built from ORM rows, with money kept
as ``Decimal`` (conversion to floats happens only in the CLI).
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, TypedDict, TypeVar

from db.models.ledger import RecurrenceFrequency, TransactionType
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import InvalidInputError
from .money import MONEY_LIMIT, to_money
from .schedule import to_naive_utc

# ---------------------------------------------------------------------------
# Field coercion helpers
# ---------------------------------------------------------------------------


def _storable_money(raw: Any) -> Decimal:
    value = to_money(raw)
    if abs(value) >= MONEY_LIMIT:
        raise ValueError("amount must be less than 10,000,000,000")
    return value


def _positive_money(raw: Any) -> Decimal:
    value = _storable_money(raw)
    if value <= 0:
        raise ValueError("amount must be greater than 0")
    return value


def _nonnegative_money(raw: Any) -> Decimal:
    value = _storable_money(raw)
    if value < 0:
        raise ValueError("amount must not be negative")
    return value


def _as_datetime(raw: Any) -> Any:
    # A bare calendar date means midnight of that day.
    if isinstance(raw, date) and not isinstance(raw, datetime):
        return datetime.combine(raw, time())
    return raw


def _as_day_end(raw: Any) -> Any:
    # A bare calendar date used as an inclusive upper bound covers the whole day.
    if isinstance(raw, str):
        try:
            raw = date.fromisoformat(raw.strip())
        except ValueError:
            return raw
    if isinstance(raw, date) and not isinstance(raw, datetime):
        return datetime.combine(raw, time.max)
    return raw


class _Input(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TransactionCreate(_Input):
    category_id: str = Field(min_length=1)
    amount: Decimal
    type: TransactionType
    description: str | None = None
    date: datetime

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> Decimal:
        return _positive_money(v)

    @field_validator("date", mode="before")
    @classmethod
    def _date_in(cls, v: Any) -> Any:
        return _as_datetime(v)

    @field_validator("date")
    @classmethod
    def _date_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class TransactionUpdate(_Input):
    """Partial update; only fields explicitly passed are applied.

    ``description=None`` clears the description. The other fields cannot be
    set to ``None``.
    """

    category_id: str | None = Field(default=None, min_length=1)
    amount: Decimal | None = None
    type: TransactionType | None = None
    description: str | None = None
    date: datetime | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> Decimal | None:
        return None if v is None else _positive_money(v)

    @field_validator("date", mode="before")
    @classmethod
    def _date_in(cls, v: Any) -> Any:
        return _as_datetime(v)

    @field_validator("date")
    @classmethod
    def _date_utc(cls, v: datetime | None) -> datetime | None:
        return None if v is None else to_naive_utc(v)

    @model_validator(mode="after")
    def _no_null_required(self) -> TransactionUpdate:
        for name in ("category_id", "amount", "type", "date"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class SummaryRange(_Input):
    """Inclusive range; a date-only ``end`` extends to the last instant of that day."""

    start: datetime
    end: datetime

    @field_validator("start", mode="before")
    @classmethod
    def _start_in(cls, v: Any) -> Any:
        return _as_datetime(v)

    @field_validator("end", mode="before")
    @classmethod
    def _end_in(cls, v: Any) -> Any:
        return _as_day_end(v)

    @field_validator("start", "end")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @model_validator(mode="after")
    def _ordered(self) -> SummaryRange:
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------


class BudgetPeriod(_Input):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)


class BudgetUpsert(BudgetPeriod):
    category_id: str = Field(min_length=1)
    amount: Decimal = Decimal("0.00")

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> Decimal:
        return _nonnegative_money(v)


class BudgetAmount(_Input):
    amount: Decimal

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> Decimal:
        return _nonnegative_money(v)


# ---------------------------------------------------------------------------
# Recurrences
# ---------------------------------------------------------------------------


class RecurrenceCreate(_Input):
    category_id: str = Field(min_length=1)
    amount: Decimal
    type: TransactionType
    description: str | None = None
    frequency: RecurrenceFrequency
    start_date: datetime
    end_date: datetime | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> Decimal:
        return _positive_money(v)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _dates_in(cls, v: Any) -> Any:
        return _as_datetime(v)

    @field_validator("start_date", "end_date")
    @classmethod
    def _dates_utc(cls, v: datetime | None) -> datetime | None:
        return None if v is None else to_naive_utc(v)

    @model_validator(mode="after")
    def _ordered(self) -> RecurrenceCreate:
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class RecurrenceUpdate(_Input):
    """Partial update; ``start_date`` is fixed at creation.

    ``end_date=None`` and ``description=None`` clear those fields.
    """

    category_id: str | None = Field(default=None, min_length=1)
    amount: Decimal | None = None
    type: TransactionType | None = None
    description: str | None = None
    frequency: RecurrenceFrequency | None = None
    end_date: datetime | None = None
    is_active: bool | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> Decimal | None:
        return None if v is None else _positive_money(v)

    @field_validator("end_date", mode="before")
    @classmethod
    def _end_in(cls, v: Any) -> Any:
        return _as_datetime(v)

    @field_validator("end_date")
    @classmethod
    def _end_utc(cls, v: datetime | None) -> datetime | None:
        return None if v is None else to_naive_utc(v)

    @model_validator(mode="after")
    def _no_null_required(self) -> RecurrenceUpdate:
        for name in ("category_id", "amount", "type", "frequency", "is_active"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class UpcomingWindow(_Input):
    days: int = Field(default=30, ge=1, le=90)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class CategoryCreate(_Input):
    name: str = Field(min_length=1, max_length=50)
    color: str = Field(default="#6366f1", pattern=r"^#[0-9A-Fa-f]{6}$")
    icon: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class CategoryUpdate(_Input):
    name: str | None = Field(default=None, min_length=1, max_length=50)
    color: str | None = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    icon: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


M = TypeVar("M", bound=BaseModel)


def parse_input(model: type[M], data: Mapping[str, Any]) -> M:
    """Validate ``data`` against ``model``; raise ``InvalidInputError`` on failure."""

    try:
        return model.model_validate(dict(data))
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or model.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidInputError(details) from e


# ---------------------------------------------------------------------------
# Result shapes
# ---------------------------------------------------------------------------


class CategoryDict(TypedDict):
    id: str
    name: str
    color: str
    icon: str | None


class CategoryWithCountDict(CategoryDict):
    transaction_count: int


class TransactionDict(TypedDict):
    id: str
    category_id: str
    amount: Decimal
    type: str
    description: str | None
    date: datetime
    recurrence_id: str | None
    category: CategoryDict


class SummaryByCategory(TypedDict):
    category: CategoryDict
    amount: Decimal


class SummaryResult(TypedDict):
    total_income: Decimal
    total_expenses: Decimal
    net_savings: Decimal
    by_category: list[SummaryByCategory]


class BudgetDict(TypedDict):
    id: str
    category_id: str
    month: int
    year: int
    amount: Decimal
    spent: Decimal
    remaining: Decimal
    percent_used: Decimal
    category: CategoryDict


class BudgetListResult(TypedDict):
    budgets: list[BudgetDict]
    total_budgeted: Decimal
    total_spent: Decimal
    remaining: Decimal


class RecurrenceDict(TypedDict):
    id: str
    category_id: str
    amount: Decimal
    type: str
    description: str | None
    frequency: str
    start_date: datetime
    end_date: datetime | None
    next_due_date: datetime
    is_active: bool
    category: CategoryDict


class RecurrenceListItem(RecurrenceDict):
    transaction_count: int


class RecurrenceDetail(RecurrenceDict):
    transactions: list[TransactionDict]


class UpcomingRecurrence(RecurrenceDict):
    days_until_due: int


class ProcessedRecurrence(TypedDict):
    recurrence_id: str
    transaction_id: str
    amount: Decimal


class ProcessDueResult(TypedDict):
    processed: int
    transactions: list[ProcessedRecurrence]


__all__ = [
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
    "parse_input",
    "CategoryDict",
    "CategoryWithCountDict",
    "TransactionDict",
    "SummaryByCategory",
    "SummaryResult",
    "BudgetDict",
    "BudgetListResult",
    "RecurrenceDict",
    "RecurrenceListItem",
    "RecurrenceDetail",
    "UpcomingRecurrence",
    "ProcessedRecurrence",
    "ProcessDueResult",
]
