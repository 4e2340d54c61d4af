"""
services/rate_service.py — Meal rate calculation.

    meal_rate = total_expenses / total_meal_units

  total_expenses   = extra expenses (+ purchased shopping items, when the
                     group's rate includes shopping)
  total_meal_units = meal rows + the sum of guest-meal counts

A period with no meals has a rate of exactly 0, never a division error, so
downstream costs and balances stay finite.

Layer rules:
  - No Flask imports. compute_meal_rate is a pure function of ledger state.
  - get_meal_rate is the cached, authorization-checked entry point.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from mealsphere.app.cache import CacheStore, cached, calculations_key
from mealsphere.app.services import ledger_reader
from mealsphere.app.services.access import get_group_or_404, require_member
from mealsphere.app.services.period_service import resolve_period

RATE_QUANTUM = Decimal("0.0001")
_ZERO = Decimal("0.00")


@dataclass(frozen=True)
class MealRateInfo:
    meal_rate: Decimal
    total_meals: int
    total_expenses: Decimal
    other_expenses: Decimal
    shopping_expenses: Decimal
    regular_meals: int
    guest_meals: int

    def as_dict(self) -> dict:
        return asdict(self)


EMPTY_RATE = MealRateInfo(
    meal_rate=Decimal("0"),
    total_meals=0,
    total_expenses=_ZERO,
    other_expenses=_ZERO,
    shopping_expenses=_ZERO,
    regular_meals=0,
    guest_meals=0,
)


def meal_rate_from_totals(total_expenses, total_meals: int) -> Decimal:
    """
    >>> meal_rate_from_totals(Decimal("1000"), 20)
    Decimal('50.0000')
    >>> meal_rate_from_totals(Decimal("250"), 0)
    Decimal('0')
    """
    if not total_meals or total_meals <= 0:
        return Decimal("0")
    rate = Decimal(total_expenses) / Decimal(total_meals)
    return rate.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def compute_meal_rate(
        group_id: int,
        session: Session,
        period_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
        include_shopping: bool = False,
) -> MealRateInfo:
    """
    Meal rate for a group over a period or an inclusive date range.

    With neither a period nor a range there is nothing to scope the ledger
    to, and the result is all zeros. Shopping is always reported in
    shopping_expenses; include_shopping only decides whether it also feeds
    total_expenses and the rate.
    """
    if period_id is None and start is None and end is None:
        return EMPTY_RATE

    scope = {"period_id": period_id, "start": start, "end": end}

    other = ledger_reader.total_extra_expenses(group_id, session, **scope)
    shopping = ledger_reader.total_shopping_amount(group_id, session, **scope)
    regular = ledger_reader.total_meal_count(group_id, session, **scope)
    guests = ledger_reader.total_guest_meal_count(group_id, session, **scope)

    total_expenses = other + shopping if include_shopping else other
    total_meals = regular + guests

    return MealRateInfo(
        meal_rate=meal_rate_from_totals(total_expenses, total_meals),
        total_meals=total_meals,
        total_expenses=total_expenses,
        other_expenses=other,
        shopping_expenses=shopping,
        regular_meals=regular,
        guest_meals=guests,
    )


def get_meal_rate(
        group_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
        period_id: int | None = None,
        include_shopping: bool = False,
) -> dict:
    """
    GET /groups/:id/meal-rate. Uses the current active period unless a
    period id is given; period_id is None when the group has no period.
    """
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    period = resolve_period(group_id, session, period_id)

    def _compute() -> dict:
        info = compute_meal_rate(
            group_id,
            session,
            period_id=period.id if period is not None else None,
            include_shopping=include_shopping,
        )
        return {
            "period_id": period.id if period is not None else None,
            **info.as_dict(),
        }

    key = calculations_key(group_id, period.id if period is not None else None, kind="rate")
    return cached(cache, key, _compute, period=period)
