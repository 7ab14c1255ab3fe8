"""Owner records.

Authentication and profile management live outside this package; the ledger
only needs a user row to scope data by and the starter categories created
alongside it.
"""

from __future__ import annotations

from typing import TypedDict

from db.models.ledger import User
from sqlalchemy import select
from sqlalchemy.orm import Session

from .categories import seed_default_categories
from .errors import ConflictError, InvalidInputError
from .logging_setup import get_logger
from .models import CategoryDict

_logger = get_logger("finance_ledger.users")


class UserDict(TypedDict):
    id: str
    email: str
    name: str | None
    categories: list[CategoryDict]


def register_user(session: Session, *, email: str, name: str | None = None) -> UserDict:
    """Create a user with the default category set; duplicate email is a conflict."""

    email_n = email.strip().lower()
    if "@" not in email_n:
        raise InvalidInputError("email: not a valid email address")
    existing = session.execute(select(User.id).where(User.email == email_n)).first()
    if existing is not None:
        raise ConflictError("User with this email already exists")

    user = User(email=email_n, name=name)
    session.add(user)
    session.flush()
    categories = seed_default_categories(session, user_id=user.id)
    _logger.info("register_user:created user_id=%s categories=%d", user.id, len(categories))
    return {"id": user.id, "email": user.email, "name": user.name, "categories": categories}


__all__ = ["UserDict", "register_user"]
