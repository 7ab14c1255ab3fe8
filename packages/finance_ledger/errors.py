"""Error taxonomy surfaced to callers of the ledger operations.

Every error carries a stable machine-readable ``kind`` plus a human-readable
message. Nothing in the package retries or recovers from these; they are
raised before or during the atomic unit of work and the surrounding
``session_scope`` rolls the unit back.
"""

from __future__ import annotations

from typing import ClassVar


class LedgerError(Exception):
    kind: ClassVar[str] = "INTERNAL"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class NotFoundError(LedgerError):
    """Referenced entity is missing or owned by another user."""

    kind: ClassVar[str] = "NOT_FOUND"


class ConflictError(LedgerError):
    """A unique key (e.g. category name per user) is already taken."""

    kind: ClassVar[str] = "CONFLICT"


class PreconditionFailedError(LedgerError):
    """The operation would break a referential or business rule."""

    kind: ClassVar[str] = "PRECONDITION_FAILED"


class InvalidInputError(LedgerError, ValueError):
    """Malformed input, rejected before any store interaction."""

    kind: ClassVar[str] = "VALIDATION"


__all__ = [
    "LedgerError",
    "NotFoundError",
    "ConflictError",
    "PreconditionFailedError",
    "InvalidInputError",
]
