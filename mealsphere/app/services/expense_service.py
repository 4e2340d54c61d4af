"""
services/expense_service.py — Extra expense and shopping item ledger writes.

Authorization:
  - Extra expenses: admin, manager, accountant and market_manager only.
  - Shopping items: any member for their own items; the same privileged
    roles for anyone's.

Every write resolves its period through require_writable_period (locked and
archived periods reject writes) and invalidates the group's calculation
cache after a successful flush.

Amounts arrive as Decimal with at most 2 dp (enforced by the schemas).
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from mealsphere.app.cache import CacheStore, invalidate_on_commit
from mealsphere.app.errors import ErrorCode, forbidden, not_found
from mealsphere.app.models.extra_expense import ExtraExpense
from mealsphere.app.models.shopping_item import ShoppingItem
from mealsphere.app.services.access import get_group_or_404, require_member, require_target_member
from mealsphere.app.services.period_service import require_writable_period, resolve_period
from mealsphere.app.services.permissions import can_manage_expenses

_EXPENSE_ROLES_MESSAGE = (
    "Only admins, managers, accountants and market managers can manage extra expenses."
)


# ── Private helpers ────────────────────────────────────────────────────────

def _require_expense_manager(group_id: int, caller_id: int, session: Session) -> None:
    membership = require_member(group_id, caller_id, session)
    if not can_manage_expenses(membership.role):
        raise forbidden(_EXPENSE_ROLES_MESSAGE)


def _get_expense_or_404(group_id: int, expense_id: int, session: Session) -> ExtraExpense:
    expense = session.get(ExtraExpense, expense_id)
    if expense is None or expense.group_id != group_id:
        raise not_found(ErrorCode.EXPENSE_NOT_FOUND, "Expense", expense_id)
    return expense


def _get_item_or_404(group_id: int, item_id: int, session: Session) -> ShoppingItem:
    item = session.get(ShoppingItem, item_id)
    if item is None or item.group_id != group_id:
        raise not_found(ErrorCode.SHOPPING_ITEM_NOT_FOUND, "Shopping item", item_id)
    return item


def _require_item_access(group_id: int, caller_id: int, owner_id: int, session: Session) -> None:
    membership = require_member(group_id, caller_id, session)
    if owner_id != caller_id and not can_manage_expenses(membership.role):
        raise forbidden("You can only change your own shopping items.")


# ── Extra expenses ─────────────────────────────────────────────────────────

def add_extra_expense(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        cache: CacheStore | None = None,
) -> ExtraExpense:
    """data: description, amount, optional date, user_id and period_id."""
    get_group_or_404(group_id, session)
    _require_expense_manager(group_id, caller_id, session)

    contributor = data.get("user_id") or caller_id
    if contributor != caller_id:
        require_target_member(group_id, contributor, session)

    period = require_writable_period(group_id, session, data.get("period_id"))

    expense = ExtraExpense(
        group_id=group_id,
        period_id=period.id,
        user_id=contributor,
        description=data["description"].strip(),
        amount=data["amount"],
        date=data.get("date") or date.today(),
    )
    session.add(expense)
    session.flush()

    invalidate_on_commit(session, cache, group_id, period.id)
    return expense


def update_extra_expense(
        group_id: int,
        expense_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        cache: CacheStore | None = None,
) -> ExtraExpense:
    get_group_or_404(group_id, session)
    _require_expense_manager(group_id, caller_id, session)
    expense = _get_expense_or_404(group_id, expense_id, session)
    require_writable_period(group_id, session, expense.period_id)

    if "description" in data:
        expense.description = data["description"].strip()
    if "amount" in data:
        expense.amount = data["amount"]
    if "date" in data:
        expense.date = data["date"]
    session.flush()

    invalidate_on_commit(session, cache, group_id, expense.period_id)
    return expense


def delete_extra_expense(
        group_id: int,
        expense_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
) -> None:
    get_group_or_404(group_id, session)
    _require_expense_manager(group_id, caller_id, session)
    expense = _get_expense_or_404(group_id, expense_id, session)
    require_writable_period(group_id, session, expense.period_id)

    period_id = expense.period_id
    session.delete(expense)
    session.flush()

    invalidate_on_commit(session, cache, group_id, period_id)


def list_extra_expenses(
        group_id: int,
        caller_id: int,
        session: Session,
        period_id: int | None = None,
) -> list[ExtraExpense]:
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    period = resolve_period(group_id, session, period_id)
    if period is None:
        return []

    stmt = (
        select(ExtraExpense)
        .where(ExtraExpense.group_id == group_id, ExtraExpense.period_id == period.id)
        .order_by(ExtraExpense.date.desc(), ExtraExpense.id.desc())
    )
    return list(session.execute(stmt).scalars().all())


# ── Shopping items ─────────────────────────────────────────────────────────

def add_shopping_item(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        cache: CacheStore | None = None,
) -> ShoppingItem:
    """data: name, quantity, optional unit, date, purchased, user_id, period_id."""
    get_group_or_404(group_id, session)
    owner_id = data.get("user_id") or caller_id
    _require_item_access(group_id, caller_id, owner_id, session)
    if owner_id != caller_id:
        require_target_member(group_id, owner_id, session)

    period = require_writable_period(group_id, session, data.get("period_id"))

    item = ShoppingItem(
        group_id=group_id,
        period_id=period.id,
        user_id=owner_id,
        name=data["name"].strip(),
        quantity=data["quantity"],
        unit=data.get("unit"),
        date=data.get("date") or date.today(),
        purchased=data.get("purchased", True),
    )
    session.add(item)
    session.flush()

    invalidate_on_commit(session, cache, group_id, period.id, owner_id)
    return item


def update_shopping_item(
        group_id: int,
        item_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        cache: CacheStore | None = None,
) -> ShoppingItem:
    get_group_or_404(group_id, session)
    item = _get_item_or_404(group_id, item_id, session)
    _require_item_access(group_id, caller_id, item.user_id, session)
    require_writable_period(group_id, session, item.period_id)

    for field in ("quantity", "unit", "date", "purchased"):
        if field in data:
            setattr(item, field, data[field])
    if "name" in data:
        item.name = data["name"].strip()
    session.flush()

    invalidate_on_commit(session, cache, group_id, item.period_id, item.user_id)
    return item


def delete_shopping_item(
        group_id: int,
        item_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
) -> None:
    get_group_or_404(group_id, session)
    item = _get_item_or_404(group_id, item_id, session)
    _require_item_access(group_id, caller_id, item.user_id, session)
    require_writable_period(group_id, session, item.period_id)

    period_id, user_id = item.period_id, item.user_id
    session.delete(item)
    session.flush()

    invalidate_on_commit(session, cache, group_id, period_id, user_id)


def list_shopping_items(
        group_id: int,
        caller_id: int,
        session: Session,
        period_id: int | None = None,
) -> list[ShoppingItem]:
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    period = resolve_period(group_id, session, period_id)
    if period is None:
        return []

    stmt = (
        select(ShoppingItem)
        .where(ShoppingItem.group_id == group_id, ShoppingItem.period_id == period.id)
        .order_by(ShoppingItem.date.desc(), ShoppingItem.id.desc())
    )
    return list(session.execute(stmt).scalars().all())
