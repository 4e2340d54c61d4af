"""
services/settlement_service.py — Per-member settlement summary.

For a group and period, one row per CURRENT member:

    meal_units = own meals + guest meals
    cost       = meal_units × meal_rate
    paid       = Σ transactions targeting the member
    balance    = paid − cost
    status     = "Paid" if balance >= 0 else "Due"   (exactly 0 is "Paid")

Members with no activity still get a row with zeros, so the row count always
equals the member count.

Round trips: one GROUP BY per entity type (meals, guest meals,
transactions) plus the member list and the rate totals, regardless of the
number of members. build_settlement_rows is pure so it can be tested
without a database.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from mealsphere.app.cache import CacheStore, cached, calculations_key
from mealsphere.app.services import ledger_reader
from mealsphere.app.services.access import get_group_or_404, require_member
from mealsphere.app.services.period_service import resolve_period
from mealsphere.app.services.rate_service import EMPTY_RATE, compute_meal_rate

STATUS_PAID = "Paid"
STATUS_DUE = "Due"

_CENT = Decimal("0.01")
_ZERO = Decimal("0.00")


def settlement_status(balance: Decimal) -> str:
    return STATUS_PAID if balance >= 0 else STATUS_DUE


def build_settlement_rows(
        members: list,
        meal_counts: dict[int, int],
        guest_counts: dict[int, int],
        paid_map: dict[int, Decimal],
        meal_rate: Decimal,
) -> list[dict]:
    """
    members: (membership, user) pairs as returned by ledger_reader.get_members.
    The maps are keyed by user id; a missing key means zero.
    """
    rows = []
    for membership, user in members:
        meals = meal_counts.get(user.id, 0)
        guests = guest_counts.get(user.id, 0)
        units = meals + guests
        cost = (Decimal(units) * meal_rate).quantize(_CENT)
        paid = paid_map.get(user.id, _ZERO).quantize(_CENT)
        balance = (paid - cost).quantize(_CENT)

        role = membership.role
        rows.append({
            "user_id": user.id,
            "name": user.name,
            "image": user.image,
            "role": role.value if hasattr(role, "value") else role,
            "meal_count": meals,
            "guest_meal_count": guests,
            "meal_units": units,
            "cost": cost,
            "paid": paid,
            "balance": balance,
            "status": settlement_status(balance),
        })
    return rows


def _period_dict(period) -> dict | None:
    if period is None:
        return None
    return {
        "id": period.id,
        "name": period.name,
        "status": period.status.value,
        "is_locked": period.is_locked,
        "start_date": period.start_date,
        "end_date": period.end_date,
    }


def _totals(rows: list[dict]) -> dict:
    total_cost = sum((r["cost"] for r in rows), _ZERO)
    total_paid = sum((r["paid"] for r in rows), _ZERO)
    total_due = sum((-r["balance"] for r in rows if r["balance"] < 0), _ZERO)
    return {
        "total_cost": total_cost,
        "total_paid": total_paid,
        "total_due": total_due,
        "members_due": sum(1 for r in rows if r["status"] == STATUS_DUE),
    }


def compute_settlement(
        group_id: int,
        period,
        session: Session,
        include_shopping: bool = False,
) -> dict:
    """Uncached settlement for an already-resolved period (or None)."""
    if period is None:
        return {
            "period": None,
            "meal_rate": EMPTY_RATE.as_dict(),
            "rows": [],
            "totals": _totals([]),
        }

    rate = compute_meal_rate(
        group_id, session, period_id=period.id, include_shopping=include_shopping,
    )
    members = ledger_reader.get_members(group_id, session)
    meal_counts = ledger_reader.meal_counts_by_user(group_id, session, period_id=period.id)
    guest_counts = ledger_reader.guest_meal_counts_by_user(group_id, session, period_id=period.id)
    paid_map = ledger_reader.transaction_sums_by_target(group_id, session, period_id=period.id)

    rows = build_settlement_rows(members, meal_counts, guest_counts, paid_map, rate.meal_rate)
    return {
        "period": _period_dict(period),
        "meal_rate": rate.as_dict(),
        "rows": rows,
        "totals": _totals(rows),
    }


def get_settlement_summary(
        group_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
        period_id: int | None = None,
        include_shopping: bool = False,
) -> dict:
    """GET /groups/:id/settlement. Any member may read it."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    period = resolve_period(group_id, session, period_id)

    key = calculations_key(group_id, period.id if period is not None else None, kind="settlement")
    return cached(
        cache,
        key,
        lambda: compute_settlement(group_id, period, session, include_shopping),
        period=period,
    )


def get_group_balance_summary(
        group_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
        period_id: int | None = None,
        include_shopping: bool = False,
) -> dict:
    """
    The settlement summary plus group-level money totals:

        group_deposits = Σ all transactions in the period
        net_balance    = opening_balance + group_deposits − total_expenses
    """
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    period = resolve_period(group_id, session, period_id)

    def _compute() -> dict:
        summary = compute_settlement(group_id, period, session, include_shopping)
        if period is None:
            opening = deposits = _ZERO
        else:
            opening = Decimal(period.opening_balance or 0).quantize(_CENT)
            deposits = ledger_reader.total_transactions(group_id, session, period_id=period.id)
        expenses = Decimal(summary["meal_rate"]["total_expenses"])
        return {
            **summary,
            "group": {
                "opening_balance": opening,
                "group_deposits": deposits,
                "total_expenses": expenses,
                "net_balance": (opening + deposits - expenses).quantize(_CENT),
            },
        }

    key = calculations_key(group_id, period.id if period is not None else None, kind="summary")
    return cached(cache, key, _compute, period=period)
