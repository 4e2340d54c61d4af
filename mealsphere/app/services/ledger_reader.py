"""
services/ledger_reader.py — Read-only aggregation over the ledger tables.

Every query is scoped to one group and EITHER a period id OR an inclusive
date range. Per-user figures are produced by a single GROUP BY query per
entity type — never one query per member — so a settlement over N members
costs a constant number of round trips.

Layer rules:
  - No Flask imports. No writes. No caching (callers cache).
  - Sums come back as Decimal quantised to cents; counts as int.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mealsphere.app.models.account_transaction import AccountTransaction
from mealsphere.app.models.enums import PaymentStatus
from mealsphere.app.models.extra_expense import ExtraExpense
from mealsphere.app.models.guest_meal import GuestMeal
from mealsphere.app.models.meal import Meal
from mealsphere.app.models.membership import Membership
from mealsphere.app.models.payment import Payment
from mealsphere.app.models.shopping_item import ShoppingItem
from mealsphere.app.models.user import User

_CENT = Decimal("0.01")


# ── Private helpers ────────────────────────────────────────────────────────

def _to_decimal(value) -> Decimal:
    """Normalises a SUM() result (None, int, float on SQLite, Decimal) to cents."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(_CENT)


def _scope(
        model,
        group_id: int,
        period_id: int | None,
        start: date | None,
        end: date | None,
        date_column=None,
) -> list:
    """
    WHERE clauses for one group plus a period id or a date range.
    A period id wins over a range when both are given.
    """
    clauses = [model.group_id == group_id]
    if period_id is not None:
        clauses.append(model.period_id == period_id)
        return clauses

    column = date_column if date_column is not None else model.date
    if start is not None:
        clauses.append(column >= start)
    if end is not None:
        clauses.append(column <= end)
    return clauses


def _transaction_scope(
        group_id: int,
        period_id: int | None,
        start: date | None,
        end: date | None,
) -> list:
    # Transactions carry a timestamp, not a date: compare against day bounds.
    clauses = [AccountTransaction.group_id == group_id]
    if period_id is not None:
        clauses.append(AccountTransaction.period_id == period_id)
        return clauses
    if start is not None:
        clauses.append(AccountTransaction.created_at >= datetime.combine(start, time.min))
    if end is not None:
        clauses.append(
            AccountTransaction.created_at < datetime.combine(end + timedelta(days=1), time.min)
        )
    return clauses


# ── Group totals ───────────────────────────────────────────────────────────

def total_extra_expenses(
        group_id: int,
        session: Session,
        period_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
) -> Decimal:
    stmt = select(func.sum(ExtraExpense.amount)).where(
        *_scope(ExtraExpense, group_id, period_id, start, end)
    )
    return _to_decimal(session.execute(stmt).scalar())


def total_shopping_amount(
        group_id: int,
        session: Session,
        period_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
) -> Decimal:
    """Sum of `quantity` over purchased shopping items."""
    stmt = select(func.sum(ShoppingItem.quantity)).where(
        *_scope(ShoppingItem, group_id, period_id, start, end),
        ShoppingItem.purchased.is_(True),
    )
    return _to_decimal(session.execute(stmt).scalar())


def total_meal_count(
        group_id: int,
        session: Session,
        period_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
) -> int:
    stmt = select(func.count(Meal.id)).where(
        *_scope(Meal, group_id, period_id, start, end)
    )
    return int(session.execute(stmt).scalar() or 0)


def total_guest_meal_count(
        group_id: int,
        session: Session,
        period_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
) -> int:
    stmt = select(func.sum(GuestMeal.count)).where(
        *_scope(GuestMeal, group_id, period_id, start, end)
    )
    return int(session.execute(stmt).scalar() or 0)


def total_transactions(
        group_id: int,
        session: Session,
        period_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
) -> Decimal:
    stmt = select(func.sum(AccountTransaction.amount)).where(
        *_transaction_scope(group_id, period_id, start, end)
    )
    return _to_decimal(session.execute(stmt).scalar())


def total_completed_payments(
        group_id: int,
        session: Session,
        period_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
) -> Decimal:
    stmt = select(func.sum(Payment.amount)).where(
        *_scope(Payment, group_id, period_id, start, end),
        Payment.status == PaymentStatus.COMPLETED,
    )
    return _to_decimal(session.execute(stmt).scalar())


# ── Per-user aggregates (one GROUP BY each) ────────────────────────────────

def meal_counts_by_user(
        group_id: int,
        session: Session,
        period_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
) -> dict[int, int]:
    stmt = (
        select(Meal.user_id, func.count(Meal.id))
        .where(*_scope(Meal, group_id, period_id, start, end))
        .group_by(Meal.user_id)
    )
    return {user_id: int(count) for user_id, count in session.execute(stmt).all()}


def guest_meal_counts_by_user(
        group_id: int,
        session: Session,
        period_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
) -> dict[int, int]:
    stmt = (
        select(GuestMeal.user_id, func.sum(GuestMeal.count))
        .where(*_scope(GuestMeal, group_id, period_id, start, end))
        .group_by(GuestMeal.user_id)
    )
    return {user_id: int(total or 0) for user_id, total in session.execute(stmt).all()}


def transaction_sums_by_target(
        group_id: int,
        session: Session,
        period_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
) -> dict[int, Decimal]:
    stmt = (
        select(AccountTransaction.target_user_id, func.sum(AccountTransaction.amount))
        .where(*_transaction_scope(group_id, period_id, start, end))
        .group_by(AccountTransaction.target_user_id)
    )
    return {
        user_id: _to_decimal(total)
        for user_id, total in session.execute(stmt).all()
    }


# ── Single-user aggregates ─────────────────────────────────────────────────

def user_meal_units(
        user_id: int,
        group_id: int,
        session: Session,
        period_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
) -> tuple[int, int]:
    """Returns (own meal count, guest meal count) for one user."""
    meals = session.execute(
        select(func.count(Meal.id)).where(
            *_scope(Meal, group_id, period_id, start, end),
            Meal.user_id == user_id,
        )
    ).scalar()
    guests = session.execute(
        select(func.sum(GuestMeal.count)).where(
            *_scope(GuestMeal, group_id, period_id, start, end),
            GuestMeal.user_id == user_id,
        )
    ).scalar()
    return int(meals or 0), int(guests or 0)


def user_transaction_sum(
        user_id: int,
        group_id: int,
        session: Session,
        period_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
) -> Decimal:
    stmt = select(func.sum(AccountTransaction.amount)).where(
        *_transaction_scope(group_id, period_id, start, end),
        AccountTransaction.target_user_id == user_id,
    )
    return _to_decimal(session.execute(stmt).scalar())


# ── Members ────────────────────────────────────────────────────────────────

def get_members(group_id: int, session: Session) -> list[tuple[Membership, User]]:
    """Current memberships of a group joined with their users, oldest first."""
    stmt = (
        select(Membership, User)
        .join(User, User.id == Membership.user_id)
        .where(Membership.group_id == group_id)
        .order_by(Membership.joined_at.asc(), Membership.id.asc())
    )
    return [(membership, user) for membership, user in session.execute(stmt).all()]
