"""
services/balance_service.py — Per-member balance computation.

This file is the SINGLE SOURCE OF TRUTH for how a member's balance is
computed. Any change to how balances work must be made here.

    balance           = Σ amount of AccountTransactions targeting the user
                        in the period (signed; the calculator never
                        interprets the type)
    available_balance = balance − (own meals + guest meals) × meal_rate

Recomputing from the transaction log always yields the value a cache entry
holds; the cache is never consulted by calculate_balance itself.

Layer rules:
  - No Flask imports. Receives a session (and, for the entry point, a cache).
  - Returns Decimals and plain dicts.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from mealsphere.app.cache import CacheStore, cached, calculations_key
from mealsphere.app.errors import forbidden
from mealsphere.app.services import ledger_reader
from mealsphere.app.services.access import get_group_or_404, require_member, require_target_member
from mealsphere.app.services.period_service import resolve_period
from mealsphere.app.services.permissions import has_balance_privilege
from mealsphere.app.services.rate_service import compute_meal_rate

_CENT = Decimal("0.01")


def calculate_balance(
        user_id: int,
        group_id: int,
        period_id: int | None,
        session: Session,
) -> Decimal:
    """Signed sum of the user's targeted transactions; 0 without a period."""
    if period_id is None:
        return Decimal("0.00")
    return ledger_reader.user_transaction_sum(user_id, group_id, session, period_id=period_id)


def calculate_available_balance(
        user_id: int,
        group_id: int,
        period_id: int | None,
        session: Session,
        meal_rate: Decimal | None = None,
        include_shopping: bool = False,
) -> dict:
    """
    Balance minus the cost of the user's meal units at the period's rate.

    meal_rate may be passed in when the caller already computed it (e.g. a
    dashboard showing several members); otherwise it is computed here.
    """
    balance = calculate_balance(user_id, group_id, period_id, session)

    if period_id is None:
        meals, guests = 0, 0
    else:
        meals, guests = ledger_reader.user_meal_units(
            user_id, group_id, session, period_id=period_id
        )

    if meal_rate is None:
        meal_rate = compute_meal_rate(
            group_id, session, period_id=period_id, include_shopping=include_shopping,
        ).meal_rate

    units = meals + guests
    total_spent = (Decimal(units) * meal_rate).quantize(_CENT)

    return {
        "user_id": user_id,
        "balance": balance,
        "meal_count": meals,
        "guest_meal_count": guests,
        "meal_units": units,
        "meal_rate": meal_rate,
        "total_spent": total_spent,
        "available_balance": (balance - total_spent).quantize(_CENT),
    }


def get_user_balance(
        group_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
        target_user_id: int | None = None,
        period_id: int | None = None,
        include_shopping: bool = False,
) -> dict:
    """
    GET /groups/:id/balance.

    Every member may read their own balance; admins and accountants may read
    anyone's. Defaults to the current active period; with no period at all
    the balance is zero and period_id is None.

    Raises:
      AppError(FORBIDDEN, 403)         — non-member, or reading another
                                         member's balance without privilege
      AppError(MEMBER_NOT_FOUND, 404)  — target is not in the group
      AppError(PERIOD_NOT_FOUND, 404)  — period_id not in this group
    """
    get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)

    target_user_id = target_user_id or caller_id
    if target_user_id != caller_id:
        if not has_balance_privilege(caller.role):
            raise forbidden("Only admins and accountants can view other members' balances.")
        require_target_member(group_id, target_user_id, session)

    period = resolve_period(group_id, session, period_id)
    resolved_period_id = period.id if period is not None else None

    def _compute() -> dict:
        return {
            "period_id": resolved_period_id,
            **calculate_available_balance(
                target_user_id,
                group_id,
                resolved_period_id,
                session,
                include_shopping=include_shopping,
            ),
        }

    key = calculations_key(group_id, resolved_period_id, target_user_id, kind="balance")
    return cached(cache, key, _compute, period=period)
