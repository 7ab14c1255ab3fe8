"""Fixed-precision money helpers.

All ledger arithmetic runs on ``Decimal`` values quantized to cents. Floats are
only accepted at the input boundary (converted through ``str`` so the decimal
literal the caller saw is what gets stored) and only produced by
:func:`to_display` for presentation.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Stored amounts are NUMERIC(12,2): at most 10 integer digits.
MONEY_LIMIT = Decimal("1e10")
_HUNDRED = Decimal(100)


def to_money(raw: Any) -> Decimal:
    """Return ``raw`` as a Decimal rounded half-up to 2 places.

    Raises ``ValueError`` for ``None``, booleans, and anything that does not
    parse as a finite decimal.
    """

    if raw is None or isinstance(raw, bool):
        raise ValueError(f"not a monetary value: {raw!r}")
    try:
        d = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
        if not d.is_finite():
            raise ValueError
        return d.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise ValueError(f"not a monetary value: {raw!r}") from None


def money_sum(values: Iterable[Decimal | None]) -> Decimal:
    """Exact sum of ``values`` (``None`` entries count as zero)."""

    total = ZERO
    for v in values:
        if v is not None:
            total += v
    return total.quantize(CENT)


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """``part`` as a percentage of ``whole`` (2 places); ``0`` when ``whole`` is 0."""

    if whole == 0:
        return ZERO
    return (part / whole * _HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


def to_display(value: Decimal | None) -> float:
    # Presentation boundary only; never feed the result back into the ledger.
    return float(value) if value is not None else 0.0


__all__ = [
    "CENT",
    "ZERO",
    "MONEY_LIMIT",
    "to_money",
    "money_sum",
    "percent_of",
    "to_display",
]
