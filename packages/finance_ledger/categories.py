"""Category helpers and service operations.

Categories are small per-user reference records. Every engine in the package
resolves the caller's category through :func:`require_category`, which is
the single ownership check for category references.

Exports
-------
- ``require_category(...)``: owned-category lookup raising ``NotFoundError``.
- ``create_category(...)`` / ``update_category(...)``: case-sensitive unique
  name per user, raising ``ConflictError`` on collision.
- ``delete_category(...)``: refuses while transactions, budgets or
  recurrences reference the row.
- ``seed_default_categories(...)``: the starter set given to new users.
"""

from __future__ import annotations

from db.models.ledger import Budget, Category, Recurrence, Transaction
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import ConflictError, NotFoundError, PreconditionFailedError
from .logging_setup import get_logger
from .models import CategoryCreate, CategoryDict, CategoryUpdate, CategoryWithCountDict

_logger = get_logger("finance_ledger.categories")

DEFAULT_CATEGORIES: tuple[tuple[str, str, str], ...] = (
    ("Food & Dining", "#ef4444", "🍔"),
    ("Transportation", "#f97316", "🚗"),
    ("Shopping", "#eab308", "🛒"),
    ("Entertainment", "#22c55e", "🎬"),
    ("Bills & Utilities", "#3b82f6", "💡"),
    ("Health", "#ec4899", "🏥"),
    ("Salary", "#10b981", "💰"),
    ("Other Income", "#6366f1", "💵"),
)


def category_to_dict(row: Category) -> CategoryDict:
    return {
        "id": row.id,
        "name": row.name,
        "color": row.color,
        "icon": row.icon,
    }


def require_category(session: Session, *, user_id: str, category_id: str) -> Category:
    """Return the caller's category or raise ``NotFoundError``.

    Foreign-owned and missing categories are indistinguishable to the caller.
    """

    row = session.execute(
        select(Category).where(Category.id == category_id, Category.user_id == user_id)
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError("Category not found")
    return row


def _name_taken(session: Session, *, user_id: str, name: str) -> bool:
    existing = session.execute(
        select(Category.id).where(Category.user_id == user_id, Category.name == name)
    ).first()
    return existing is not None


def list_categories(session: Session, *, user_id: str) -> list[CategoryWithCountDict]:
    """Return the caller's categories by name, each with its transaction count."""

    counts = (
        select(Transaction.category_id, func.count(Transaction.id).label("n"))
        .where(Transaction.user_id == user_id)
        .group_by(Transaction.category_id)
        .subquery()
    )
    rows = session.execute(
        select(Category, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.category_id == Category.id)
        .where(Category.user_id == user_id)
        .order_by(Category.name)
    ).all()
    return [{**category_to_dict(cat), "transaction_count": int(n)} for cat, n in rows]


def create_category(session: Session, *, user_id: str, data: CategoryCreate) -> CategoryDict:
    """Create a category; a duplicate name for the same user is a conflict."""

    if _name_taken(session, user_id=user_id, name=data.name):
        raise ConflictError("Category with this name already exists")

    row = Category(user_id=user_id, name=data.name, color=data.color, icon=data.icon)
    session.add(row)
    try:
        session.flush()
    except IntegrityError:  # pragma: no cover - depends on DB uniqueness under races
        raise ConflictError("Category with this name already exists") from None
    _logger.info("create_category:created user_id=%s category_id=%s", user_id, row.id)
    return category_to_dict(row)


def update_category(
    session: Session, *, user_id: str, category_id: str, data: CategoryUpdate
) -> CategoryDict:
    row = require_category(session, user_id=user_id, category_id=category_id)
    changes = data.changes()

    new_name = changes.get("name")
    if new_name is not None and new_name != row.name:
        if _name_taken(session, user_id=user_id, name=new_name):
            raise ConflictError("Category with this name already exists")

    for field, value in changes.items():
        # name/color are NOT NULL; an explicit None leaves them unchanged
        if value is None and field in ("name", "color"):
            continue
        setattr(row, field, value)
    session.flush()
    return category_to_dict(row)


def delete_category(session: Session, *, user_id: str, category_id: str) -> CategoryDict:
    """Delete an unused category.

    Categories still referenced by transactions, budgets or recurrences are
    kept; the caller must move or delete those rows first.
    """

    row = require_category(session, user_id=user_id, category_id=category_id)
    in_use = session.execute(
        select(func.count(Transaction.id)).where(Transaction.category_id == row.id)
    ).scalar_one()
    if in_use > 0:
        raise PreconditionFailedError("Cannot delete category with existing transactions")
    # Budgets and recurrences also reference the category with ON DELETE RESTRICT.
    for model, label in ((Budget, "budgets"), (Recurrence, "recurrences")):
        if session.execute(select(model.id).where(model.category_id == row.id).limit(1)).first():
            raise PreconditionFailedError(f"Cannot delete category with existing {label}")

    result = category_to_dict(row)
    session.delete(row)
    session.flush()
    return result


def seed_default_categories(session: Session, *, user_id: str) -> list[CategoryDict]:
    """Insert the default starter categories the user does not have yet."""

    existing = set(
        session.execute(select(Category.name).where(Category.user_id == user_id)).scalars()
    )
    created: list[Category] = []
    for name, color, icon in DEFAULT_CATEGORIES:
        if name in existing:
            continue
        row = Category(user_id=user_id, name=name, color=color, icon=icon)
        session.add(row)
        created.append(row)
    session.flush()
    return [category_to_dict(r) for r in created]


__all__ = [
    "DEFAULT_CATEGORIES",
    "category_to_dict",
    "require_category",
    "list_categories",
    "create_category",
    "update_category",
    "delete_category",
    "seed_default_categories",
]
