"""
services/meal_service.py — Meal and guest-meal ledger writes, meal settings
and the auto-meal run.

Authorization:
  - Any member manages their own meals and guest meals.
  - admin, manager and meal_manager manage anyone's.
  - Group meal settings and auto-meal runs are for the same three roles;
    each member edits only their own auto-meal order.

Write rules (every add/update/delete):
  - The target period comes from require_writable_period: no active period,
    a locked period or an archived period rejects the write untouched.
  - The meal date must fall inside the period.
  - After a successful flush the group's calculation cache is invalidated.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mealsphere.app.cache import CacheStore, invalidate_on_commit
from mealsphere.app.errors import ErrorCode, conflict, forbidden, not_found, rule_violation
from mealsphere.app.models.auto_meal_settings import AutoMealSettings
from mealsphere.app.models.enums import MealType
from mealsphere.app.models.guest_meal import GuestMeal
from mealsphere.app.models.meal import Meal
from mealsphere.app.models.meal_settings import DEFAULT_MAX_MEALS_PER_DAY, MealSettings
from mealsphere.app.models.membership import Membership
from mealsphere.app.models.period import Period
from mealsphere.app.services.access import get_group_or_404, require_member, require_target_member
from mealsphere.app.services.period_service import require_writable_period, resolve_period
from mealsphere.app.services.permissions import can_manage_meals

logger = logging.getLogger(__name__)

DEFAULT_GUEST_MEAL_LIMIT = 10


# ── Private helpers ────────────────────────────────────────────────────────

def _resolve_target_user(
        group_id: int,
        caller_id: int,
        user_id: int | None,
        session: Session,
) -> int:
    """Returns the member the meal is for, checking the caller may act for them."""
    caller = require_member(group_id, caller_id, session)
    if user_id is None or user_id == caller_id:
        return caller_id
    if not can_manage_meals(caller.role):
        raise forbidden("Only admins, managers and meal managers can manage other members' meals.")
    require_target_member(group_id, user_id, session)
    return user_id


def _require_date_in_period(meal_date: date, period: Period) -> None:
    if meal_date < period.start_date or (
            period.end_date is not None and meal_date > period.end_date
    ):
        end = period.end_date.isoformat() if period.end_date else "open"
        raise rule_violation(
            ErrorCode.MEAL_DATE_OUTSIDE_PERIOD,
            f"{meal_date.isoformat()} is outside period '{period.name}' "
            f"({period.start_date.isoformat()} to {end}).",
            field="date",
        )


def _get_meal_or_404(group_id: int, meal_id: int, session: Session) -> Meal:
    meal = session.get(Meal, meal_id)
    if meal is None or meal.group_id != group_id:
        raise not_found(ErrorCode.MEAL_NOT_FOUND, "Meal", meal_id)
    return meal


def _get_guest_meal_or_404(group_id: int, guest_meal_id: int, session: Session) -> GuestMeal:
    guest_meal = session.get(GuestMeal, guest_meal_id)
    if guest_meal is None or guest_meal.group_id != group_id:
        raise not_found(ErrorCode.GUEST_MEAL_NOT_FOUND, "Guest meal", guest_meal_id)
    return guest_meal


def _require_owner_or_manager(group_id: int, caller_id: int, owner_id: int, session: Session) -> None:
    caller = require_member(group_id, caller_id, session)
    if owner_id != caller_id and not can_manage_meals(caller.role):
        raise forbidden("You can only change your own meals.")


def _guest_total(
        group_id: int,
        user_id: int,
        meal_date: date,
        meal_type: MealType,
        session: Session,
        exclude_id: int | None = None,
) -> int:
    stmt = select(func.sum(GuestMeal.count)).where(
        GuestMeal.group_id == group_id,
        GuestMeal.user_id == user_id,
        GuestMeal.date == meal_date,
        GuestMeal.meal_type == meal_type,
    )
    if exclude_id is not None:
        stmt = stmt.where(GuestMeal.id != exclude_id)
    return int(session.execute(stmt).scalar() or 0)


def _check_guest_limit(existing: int, requested: int, limit: int) -> None:
    if existing + requested > limit:
        raise rule_violation(
            ErrorCode.GUEST_MEAL_LIMIT_EXCEEDED,
            f"At most {limit} guest meals are allowed per member per meal slot "
            f"({existing} already recorded).",
            field="count",
        )


# ── Meals ──────────────────────────────────────────────────────────────────

def add_meal(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        cache: CacheStore | None = None,
) -> Meal:
    """
    Records one meal slot. data: date, meal_type, optional user_id and
    period_id.

    Raises:
      AppError(NO_ACTIVE_PERIOD / PERIOD_LOCKED / PERIOD_ARCHIVED, 409)
      AppError(MEAL_DATE_OUTSIDE_PERIOD, 422)
      AppError(DUPLICATE_MEAL, 409) — the member already has this slot
    """
    get_group_or_404(group_id, session)
    user_id = _resolve_target_user(group_id, caller_id, data.get("user_id"), session)
    period = require_writable_period(group_id, session, data.get("period_id"))

    meal_date = data["date"]
    meal_type = MealType(data["meal_type"])
    _require_date_in_period(meal_date, period)

    duplicate = session.execute(
        select(Meal.id).where(
            Meal.group_id == group_id,
            Meal.user_id == user_id,
            Meal.date == meal_date,
            Meal.meal_type == meal_type,
            )
    ).first()
    if duplicate is not None:
        raise conflict(
            ErrorCode.DUPLICATE_MEAL,
            f"A {meal_type.value} on {meal_date.isoformat()} is already recorded for this member.",
        )

    meal = Meal(
        group_id=group_id,
        period_id=period.id,
        user_id=user_id,
        date=meal_date,
        meal_type=meal_type,
    )
    session.add(meal)
    session.flush()

    invalidate_on_commit(session, cache, group_id, period.id, user_id)
    return meal


def remove_meal(
        group_id: int,
        meal_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
) -> None:
    get_group_or_404(group_id, session)
    meal = _get_meal_or_404(group_id, meal_id, session)
    _require_owner_or_manager(group_id, caller_id, meal.user_id, session)
    require_writable_period(group_id, session, meal.period_id)

    period_id, user_id = meal.period_id, meal.user_id
    session.delete(meal)
    session.flush()

    invalidate_on_commit(session, cache, group_id, period_id, user_id)


def list_meals(
        group_id: int,
        caller_id: int,
        session: Session,
        period_id: int | None = None,
        user_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
) -> list[Meal]:
    """Meals of a period (default: the active one); [] when there is none."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    period = resolve_period(group_id, session, period_id)
    if period is None:
        return []

    stmt = select(Meal).where(Meal.group_id == group_id, Meal.period_id == period.id)
    if user_id is not None:
        stmt = stmt.where(Meal.user_id == user_id)
    if start is not None:
        stmt = stmt.where(Meal.date >= start)
    if end is not None:
        stmt = stmt.where(Meal.date <= end)
    stmt = stmt.order_by(Meal.date.asc(), Meal.id.asc())
    return list(session.execute(stmt).scalars().all())


# ── Guest meals ────────────────────────────────────────────────────────────

def add_guest_meal(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        cache: CacheStore | None = None,
        guest_limit: int = DEFAULT_GUEST_MEAL_LIMIT,
) -> GuestMeal:
    """data: date, meal_type, count (>= 1), optional user_id and period_id."""
    get_group_or_404(group_id, session)
    user_id = _resolve_target_user(group_id, caller_id, data.get("user_id"), session)
    period = require_writable_period(group_id, session, data.get("period_id"))

    meal_date = data["date"]
    meal_type = MealType(data["meal_type"])
    count = int(data.get("count", 1))
    _require_date_in_period(meal_date, period)
    _check_guest_limit(
        _guest_total(group_id, user_id, meal_date, meal_type, session), count, guest_limit,
    )

    guest_meal = GuestMeal(
        group_id=group_id,
        period_id=period.id,
        user_id=user_id,
        date=meal_date,
        meal_type=meal_type,
        count=count,
    )
    session.add(guest_meal)
    session.flush()

    invalidate_on_commit(session, cache, group_id, period.id, user_id)
    return guest_meal


def update_guest_meal(
        group_id: int,
        guest_meal_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        cache: CacheStore | None = None,
        guest_limit: int = DEFAULT_GUEST_MEAL_LIMIT,
) -> GuestMeal:
    """Only `count` may change; date and slot are fixed once recorded."""
    get_group_or_404(group_id, session)
    guest_meal = _get_guest_meal_or_404(group_id, guest_meal_id, session)
    _require_owner_or_manager(group_id, caller_id, guest_meal.user_id, session)
    require_writable_period(group_id, session, guest_meal.period_id)

    count = int(data["count"])
    _check_guest_limit(
        _guest_total(
            group_id,
            guest_meal.user_id,
            guest_meal.date,
            guest_meal.meal_type,
            session,
            exclude_id=guest_meal.id,
        ),
        count,
        guest_limit,
    )

    guest_meal.count = count
    session.flush()

    invalidate_on_commit(session, cache, group_id, guest_meal.period_id, guest_meal.user_id)
    return guest_meal


def delete_guest_meal(
        group_id: int,
        guest_meal_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
) -> None:
    get_group_or_404(group_id, session)
    guest_meal = _get_guest_meal_or_404(group_id, guest_meal_id, session)
    _require_owner_or_manager(group_id, caller_id, guest_meal.user_id, session)
    require_writable_period(group_id, session, guest_meal.period_id)

    period_id, user_id = guest_meal.period_id, guest_meal.user_id
    session.delete(guest_meal)
    session.flush()

    invalidate_on_commit(session, cache, group_id, period_id, user_id)


def list_guest_meals(
        group_id: int,
        caller_id: int,
        session: Session,
        period_id: int | None = None,
        user_id: int | None = None,
) -> list[GuestMeal]:
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    period = resolve_period(group_id, session, period_id)
    if period is None:
        return []

    stmt = select(GuestMeal).where(
        GuestMeal.group_id == group_id,
        GuestMeal.period_id == period.id,
        )
    if user_id is not None:
        stmt = stmt.where(GuestMeal.user_id == user_id)
    stmt = stmt.order_by(GuestMeal.date.asc(), GuestMeal.id.asc())
    return list(session.execute(stmt).scalars().all())


# ── Meal settings ──────────────────────────────────────────────────────────

def _meal_settings_dict(group_id: int, settings: MealSettings | None, default_guest_limit: int) -> dict:
    if settings is None:
        return {
            "group_id": group_id,
            "auto_meal_enabled": False,
            "max_meals_per_day": DEFAULT_MAX_MEALS_PER_DAY,
            "allow_guest_meals": True,
            "guest_meal_limit": default_guest_limit,
        }
    return {
        "group_id": group_id,
        "auto_meal_enabled": settings.auto_meal_enabled,
        "max_meals_per_day": settings.max_meals_per_day,
        "allow_guest_meals": settings.allow_guest_meals,
        "guest_meal_limit": (
            settings.guest_meal_limit if settings.guest_meal_limit is not None else default_guest_limit
        ),
    }


def _find_meal_settings(group_id: int, session: Session) -> MealSettings | None:
    return session.execute(
        select(MealSettings).where(MealSettings.group_id == group_id)
    ).scalar_one_or_none()


def guest_limit_for(group_id: int, session: Session, default: int = DEFAULT_GUEST_MEAL_LIMIT) -> int:
    """Per-slot guest cap for the group; 0 when the group has guest meals off."""
    settings = _find_meal_settings(group_id, session)
    if settings is None:
        return default
    if not settings.allow_guest_meals:
        return 0
    return settings.guest_meal_limit if settings.guest_meal_limit is not None else default


def get_meal_settings(
        group_id: int,
        caller_id: int,
        session: Session,
        default_guest_limit: int = DEFAULT_GUEST_MEAL_LIMIT,
) -> dict:
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    return _meal_settings_dict(group_id, _find_meal_settings(group_id, session), default_guest_limit)


def update_meal_settings(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        cache: CacheStore | None = None,
        default_guest_limit: int = DEFAULT_GUEST_MEAL_LIMIT,
) -> dict:
    """
    Admins, managers and meal managers only. data may carry
    auto_meal_enabled, max_meals_per_day, allow_guest_meals and
    guest_meal_limit (None falls back to the configured limit).
    """
    get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)
    if not can_manage_meals(caller.role):
        raise forbidden("Only admins, managers and meal managers can change meal settings.")

    settings = _find_meal_settings(group_id, session)
    if settings is None:
        settings = MealSettings(group_id=group_id)
        session.add(settings)

    for key in ("auto_meal_enabled", "max_meals_per_day", "allow_guest_meals", "guest_meal_limit"):
        if key in data:
            setattr(settings, key, data[key])
    session.flush()

    invalidate_on_commit(session, cache, group_id)
    logger.info("meal settings of group %s changed by user %s", group_id, caller_id)
    return _meal_settings_dict(group_id, settings, default_guest_limit)


def _auto_settings_dict(group_id: int, user_id: int, settings: AutoMealSettings | None) -> dict:
    if settings is None:
        settings = AutoMealSettings(
            group_id=group_id,
            user_id=user_id,
            is_enabled=False,
            breakfast_enabled=True,
            lunch_enabled=True,
            dinner_enabled=True,
            guest_meal_enabled=False,
            excluded_dates=[],
        )
    return {
        "group_id": group_id,
        "user_id": user_id,
        "is_enabled": settings.is_enabled,
        "breakfast_enabled": settings.breakfast_enabled,
        "lunch_enabled": settings.lunch_enabled,
        "dinner_enabled": settings.dinner_enabled,
        "guest_meal_enabled": settings.guest_meal_enabled,
        "excluded_dates": sorted(settings.excluded_dates or []),
    }


def _find_auto_settings(group_id: int, user_id: int, session: Session) -> AutoMealSettings | None:
    return session.execute(
        select(AutoMealSettings).where(
            AutoMealSettings.group_id == group_id,
            AutoMealSettings.user_id == user_id,
        )
    ).scalar_one_or_none()


def get_auto_meal_settings(group_id: int, caller_id: int, session: Session) -> dict:
    """The caller's own standing order (defaults when never saved)."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    return _auto_settings_dict(group_id, caller_id, _find_auto_settings(group_id, caller_id, session))


def update_auto_meal_settings(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        cache: CacheStore | None = None,
) -> dict:
    """
    A member edits only their own standing order. data may carry
    is_enabled, the three per-slot flags, guest_meal_enabled and
    excluded_dates (a list of dates, replacing the stored one).
    """
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    settings = _find_auto_settings(group_id, caller_id, session)
    if settings is None:
        settings = AutoMealSettings(group_id=group_id, user_id=caller_id, excluded_dates=[])
        session.add(settings)

    for key in ("is_enabled", "breakfast_enabled", "lunch_enabled", "dinner_enabled", "guest_meal_enabled"):
        if key in data:
            setattr(settings, key, data[key])
    if "excluded_dates" in data:
        settings.excluded_dates = sorted({day.isoformat() for day in data["excluded_dates"]})
    session.flush()

    invalidate_on_commit(session, cache, group_id, user_id=caller_id)
    return _auto_settings_dict(group_id, caller_id, settings)


# ── Auto meals ─────────────────────────────────────────────────────────────

def trigger_auto_meals(
        group_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
        target_date: date | None = None,
        default_guest_limit: int = DEFAULT_GUEST_MEAL_LIMIT,
) -> dict:
    """
    Books the standing orders of every enabled member for one date.

    Slots a member already holds are left alone, a member never goes past
    max_meals_per_day, and a guest portion is added per new slot only for
    members with guest_meal_enabled while the slot stays under the guest
    limit. Members who excluded the date, or who have left the group, are
    skipped. All rows go to the active period, which must accept writes.

    Raises:
      AppError(FORBIDDEN, 403)                 — admins, managers, meal managers only
      AppError(AUTO_MEALS_DISABLED, 422)       — the group has auto meals off
      AppError(NO_ACTIVE_PERIOD / PERIOD_LOCKED, 409)
      AppError(MEAL_DATE_OUTSIDE_PERIOD, 422)
    """
    get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)
    if not can_manage_meals(caller.role):
        raise forbidden("Only admins, managers and meal managers can trigger auto meals.")

    settings = _find_meal_settings(group_id, session)
    if settings is None or not settings.auto_meal_enabled:
        raise rule_violation(
            ErrorCode.AUTO_MEALS_DISABLED,
            "Auto meals are not enabled for this group.",
        )

    target_date = target_date or date.today()
    period = require_writable_period(group_id, session)
    _require_date_in_period(target_date, period)

    orders = session.execute(
        select(AutoMealSettings)
        .join(
            Membership,
            (Membership.group_id == AutoMealSettings.group_id)
            & (Membership.user_id == AutoMealSettings.user_id),
        )
        .where(
            AutoMealSettings.group_id == group_id,
            AutoMealSettings.is_enabled.is_(True),
            Membership.is_banned.is_(False),
        )
        .order_by(AutoMealSettings.user_id)
    ).scalars().all()

    held = set(session.execute(
        select(Meal.user_id, Meal.meal_type).where(
            Meal.group_id == group_id,
            Meal.date == target_date,
        )
    ).tuples().all())
    per_member = Counter(user_id for user_id, _ in held)

    guest_limit = guest_limit_for(group_id, session, default_guest_limit)
    day = target_date.isoformat()
    meals_created = guest_meals_created = skipped = 0

    for order in orders:
        if day in (order.excluded_dates or []):
            skipped += 1
            continue
        for meal_type in order.enabled_meal_types():
            if (order.user_id, meal_type) in held:
                continue
            if per_member[order.user_id] >= settings.max_meals_per_day:
                break
            session.add(Meal(
                group_id=group_id,
                period_id=period.id,
                user_id=order.user_id,
                date=target_date,
                meal_type=meal_type,
            ))
            held.add((order.user_id, meal_type))
            per_member[order.user_id] += 1
            meals_created += 1

            if order.guest_meal_enabled and _guest_total(
                    group_id, order.user_id, target_date, meal_type, session,
            ) < guest_limit:
                session.add(GuestMeal(
                    group_id=group_id,
                    period_id=period.id,
                    user_id=order.user_id,
                    date=target_date,
                    meal_type=meal_type,
                    count=1,
                ))
                guest_meals_created += 1
    session.flush()

    if meals_created or guest_meals_created:
        invalidate_on_commit(session, cache, group_id, period.id)
    logger.info(
        "auto meals for group %s on %s: %s meals, %s guest meals, %s members skipped",
        group_id, day, meals_created, guest_meals_created, skipped,
    )
    return {
        "date": day,
        "period_id": period.id,
        "meals_created": meals_created,
        "guest_meals_created": guest_meals_created,
        "members_skipped": skipped,
    }
