"""
services/period_service.py — Period store access and the lifecycle state machine.

States and transitions:

    (none) ──create──▶ ACTIVE ──end──▶ ENDED ──archive──▶ ARCHIVED
                         │                 │                  │
                         └──archive────────┼──▶ (ended today, then archived)
                                           └──restart / restart──▶ new ACTIVE row

    lock / unlock toggle `is_locked` on ACTIVE or ENDED periods. A locked
    period rejects every ledger write (require_writable_period).

Invariants enforced here:
  - At most one ACTIVE period per group. Checked before every insert and
    backed by the partial unique index uq_periods_one_active_per_group; an
    IntegrityError from a concurrent insert is reported as the same
    ACTIVE_PERIOD_EXISTS conflict, unless it came from the per-group name
    constraint (DUPLICATE_PERIOD_NAME).
  - Every lifecycle mutation requires an admin, manager or moderator role.
  - Every lifecycle mutation invalidates the group's calculation cache.

Layer rules:
  - No Flask imports. Receives a SQLAlchemy session and an optional cache.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mealsphere.app.cache import CacheStore, invalidate_on_commit
from mealsphere.app.errors import AppError, ErrorCode, conflict, forbidden, not_found
from mealsphere.app.models.account_transaction import AccountTransaction
from mealsphere.app.models.enums import PeriodMode, PeriodStatus, Role
from mealsphere.app.models.extra_expense import ExtraExpense
from mealsphere.app.models.guest_meal import GuestMeal
from mealsphere.app.models.meal import Meal
from mealsphere.app.models.payment import Payment
from mealsphere.app.models.period import Period
from mealsphere.app.models.shopping_item import ShoppingItem
from mealsphere.app.services import ledger_reader
from mealsphere.app.services.access import get_group_or_404, require_member
from mealsphere.app.services.permissions import can_manage_periods

logger = logging.getLogger(__name__)

ACTIVE_PERIOD_EXISTS_MESSAGE = (
    "There is already an active period for this group. "
    "End the current period before starting a new one."
)

# Ledger tables whose rows move with a "restart with data".
_LEDGER_MODELS = (Meal, GuestMeal, ExtraExpense, ShoppingItem, AccountTransaction, Payment)


# ── Private helpers ────────────────────────────────────────────────────────

def _get_period_or_404(group_id: int, period_id: int, session: Session) -> Period:
    """A period of another group is reported as not found."""
    period = session.get(Period, period_id)
    if period is None or period.group_id != group_id:
        raise not_found(ErrorCode.PERIOD_NOT_FOUND, "Period", period_id)
    return period


def _require_period_manager(group_id: int, caller_id: int, session: Session) -> None:
    get_group_or_404(group_id, session)
    membership = require_member(group_id, caller_id, session)
    if not can_manage_periods(membership.role):
        raise forbidden("Only admins, managers and moderators can manage periods.")


def _raise_if_active_exists(group_id: int, session: Session, message: str) -> None:
    if get_current_period(group_id, session) is not None:
        raise conflict(ErrorCode.ACTIVE_PERIOD_EXISTS, message)


def _name_taken(group_id: int, name: str, session: Session) -> bool:
    return session.execute(
        select(Period.id).where(Period.group_id == group_id, Period.name == name)
    ).first() is not None


def _unique_name(group_id: int, base: str, session: Session) -> str:
    """base, then "base (2)", "base (3)", ..."""
    if not _name_taken(group_id, base, session):
        return base
    counter = 2
    while _name_taken(group_id, f"{base} ({counter})", session):
        counter += 1
    return f"{base} ({counter})"


def _restart_name(group_id: int, source_name: str, session: Session) -> str:
    """"X (Restarted)", then "X (Restarted 2)", "X (Restarted 3)", ..."""
    candidate = f"{source_name} (Restarted)"
    counter = 2
    while _name_taken(group_id, candidate, session):
        candidate = f"{source_name} (Restarted {counter})"
        counter += 1
    return candidate


def _carried_opening_balance(group_id: int, session: Session) -> Decimal:
    """
    Closing balance of the most recently ended period, if that period is
    flagged carry_forward. Archived periods were ended first, so they count.
    """
    last_closed = session.execute(
        select(Period)
        .where(
            Period.group_id == group_id,
            Period.status != PeriodStatus.ACTIVE,
            Period.closing_balance.is_not(None),
            )
        .order_by(Period.end_date.desc(), Period.id.desc())
        .limit(1)
    ).scalar_one_or_none()

    if last_closed is None or not last_closed.carry_forward:
        return Decimal("0.00")
    return last_closed.closing_balance


def _violated_name_constraint(exc: IntegrityError) -> bool:
    """True when uq_periods_group_name, not the active-period index, fired."""
    constraint = getattr(getattr(exc.orig, "diag", None), "constraint_name", None)
    if constraint is not None:
        return constraint == "uq_periods_group_name"
    # SQLite names the columns instead: "... failed: periods.group_id, periods.name"
    detail = str(exc.orig)
    return "uq_periods_group_name" in detail or "periods.name" in detail


def _period_write_conflict(exc: IntegrityError, name: str) -> AppError:
    if _violated_name_constraint(exc):
        return conflict(
            ErrorCode.DUPLICATE_PERIOD_NAME,
            f"A period named '{name}' already exists in this group.",
        )
    return conflict(ErrorCode.ACTIVE_PERIOD_EXISTS, ACTIVE_PERIOD_EXISTS_MESSAGE)


def _insert_active_period(period: Period, session: Session) -> Period:
    session.add(period)
    try:
        session.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent create or rename.
        name = period.name
        session.rollback()
        raise _period_write_conflict(exc, name) from exc
    return period


def _find_overlapping_period(
        group_id: int,
        start_date: date,
        end_date: date,
        session: Session,
) -> Period | None:
    """First period with a closed date range that intersects [start_date, end_date]."""
    return session.execute(
        select(Period)
        .where(
            Period.group_id == group_id,
            Period.end_date.is_not(None),
            Period.start_date <= end_date,
            Period.end_date >= start_date,
        )
        .order_by(Period.start_date, Period.id)
        .limit(1)
    ).scalar_one_or_none()


def _compute_closing_balance(period: Period, session: Session, include_shopping: bool) -> Decimal:
    """opening balance + Σ transactions − total expenses."""
    expenses = ledger_reader.total_extra_expenses(period.group_id, session, period_id=period.id)
    if include_shopping:
        expenses += ledger_reader.total_shopping_amount(
            period.group_id, session, period_id=period.id
        )
    deposits = ledger_reader.total_transactions(period.group_id, session, period_id=period.id)
    return (Decimal(period.opening_balance or 0) + deposits - expenses).quantize(Decimal("0.01"))


def _end(
        period: Period,
        session: Session,
        end_date: date | None,
        include_shopping: bool,
) -> None:
    end_date = end_date or date.today()
    if end_date < period.start_date:
        raise AppError(
            ErrorCode.INVALID_DATE_RANGE,
            "A period cannot end before its start date.",
            400,
            field="end_date",
        )

    period.status = PeriodStatus.ENDED
    period.end_date = end_date
    period.closing_balance = _compute_closing_balance(period, session, include_shopping)

    # Ending by hand takes a monthly group out of automatic rollover.
    group = period.group
    if group is not None and group.period_mode == PeriodMode.MONTHLY:
        group.period_mode = PeriodMode.CUSTOM


# ── Period store (reads) ───────────────────────────────────────────────────

def get_current_period(group_id: int, session: Session) -> Period | None:
    """The group's ACTIVE period, or None."""
    return session.execute(
        select(Period).where(
            Period.group_id == group_id,
            Period.status == PeriodStatus.ACTIVE,
            )
    ).scalar_one_or_none()


def resolve_period(group_id: int, session: Session, period_id: int | None = None) -> Period | None:
    """
    The period a read-only calculation should use: the given one (404 if it
    is not in this group) or the current active period, which may be None.
    """
    if period_id is not None:
        return _get_period_or_404(group_id, period_id, session)
    return get_current_period(group_id, session)


def list_periods(
        group_id: int,
        caller_id: int,
        session: Session,
        include_archived: bool = True,
) -> list[Period]:
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    stmt = select(Period).where(Period.group_id == group_id)
    if not include_archived:
        stmt = stmt.where(Period.status != PeriodStatus.ARCHIVED)
    stmt = stmt.order_by(Period.start_date.desc(), Period.id.desc())
    return list(session.execute(stmt).scalars().all())


def get_period(group_id: int, period_id: int, caller_id: int, session: Session) -> Period:
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    return _get_period_or_404(group_id, period_id, session)


def get_active_period(group_id: int, caller_id: int, session: Session) -> Period | None:
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    return get_current_period(group_id, session)


def require_writable_period(
        group_id: int,
        session: Session,
        period_id: int | None = None,
) -> Period:
    """
    Resolves the period a ledger write goes to and rejects it when the
    period cannot accept writes.

    Raises:
      AppError(NO_ACTIVE_PERIOD, 409)  — no id given and no active period
      AppError(PERIOD_NOT_FOUND, 404)  — id not in this group
      AppError(PERIOD_ARCHIVED, 409)   — archived periods are read-only
      AppError(PERIOD_LOCKED, 409)     — locked periods are frozen
    """
    if period_id is not None:
        period = _get_period_or_404(group_id, period_id, session)
    else:
        period = get_current_period(group_id, session)
        if period is None:
            raise conflict(
                ErrorCode.NO_ACTIVE_PERIOD,
                "There is no active period for this group. Start a period first.",
            )

    if period.status == PeriodStatus.ARCHIVED:
        raise conflict(
            ErrorCode.PERIOD_ARCHIVED,
            f"Period '{period.name}' is archived and cannot be modified.",
        )
    if period.is_locked:
        raise conflict(
            ErrorCode.PERIOD_LOCKED,
            f"Period '{period.name}' is locked. Unlock it before making changes.",
        )
    return period


# ── Lifecycle (writes) ─────────────────────────────────────────────────────

def create_period(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        cache: CacheStore | None = None,
) -> Period:
    """
    Starts a new ACTIVE period.

    data keys (validated by CreatePeriodSchema): name, start_date, end_date,
    opening_balance, carry_forward, notes. Only name is required; start_date
    defaults to today. A name already used in the group gets " (2)", " (3)"...

    end_date is the planned end of the new period, so it may not lie in the
    past, and with an end_date the range may not overlap any earlier
    period's closed range.

    Raises:
      AppError(FORBIDDEN, 403)             — caller may not manage periods
      AppError(ACTIVE_PERIOD_EXISTS, 409)  — end the current period first
      AppError(INVALID_DATE_RANGE, 400)    — end_date not after start_date, or already past
      AppError(PERIOD_OVERLAP, 409)        — the range overlaps an existing period
    """
    _require_period_manager(group_id, caller_id, session)
    _raise_if_active_exists(group_id, session, ACTIVE_PERIOD_EXISTS_MESSAGE)

    start_date = data.get("start_date") or date.today()
    end_date = data.get("end_date")
    if end_date is not None:
        if end_date <= start_date:
            raise AppError(
                ErrorCode.INVALID_DATE_RANGE,
                "end_date must be after start_date.",
                400,
                field="end_date",
            )
        if end_date < date.today():
            raise AppError(
                ErrorCode.INVALID_DATE_RANGE,
                "end_date of an active period cannot be in the past.",
                400,
                field="end_date",
            )
        overlapping = _find_overlapping_period(group_id, start_date, end_date, session)
        if overlapping is not None:
            raise conflict(
                ErrorCode.PERIOD_OVERLAP,
                f"Period dates overlap with existing period '{overlapping.name}' "
                f"({overlapping.start_date.isoformat()} to {overlapping.end_date.isoformat()}).",
            )

    opening_balance = data.get("opening_balance")
    if opening_balance is None:
        opening_balance = _carried_opening_balance(group_id, session)

    period = Period(
        group_id=group_id,
        name=_unique_name(group_id, data["name"].strip(), session),
        start_date=start_date,
        end_date=end_date,
        status=PeriodStatus.ACTIVE,
        is_locked=False,
        opening_balance=opening_balance,
        carry_forward=bool(data.get("carry_forward", False)),
        notes=data.get("notes"),
        created_by=caller_id,
    )
    _insert_active_period(period, session)

    invalidate_on_commit(session, cache, group_id, period.id)
    logger.info("period %s started for group %s by user %s", period.id, group_id, caller_id)
    return period


def end_period(
        group_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
        period_id: int | None = None,
        end_date: date | None = None,
        include_shopping: bool = False,
) -> Period:
    """
    ACTIVE → ENDED. With no period_id the current active period is ended.

    Raises:
      AppError(NO_ACTIVE_PERIOD, 409)   — no id and nothing active
      AppError(PERIOD_NOT_ACTIVE, 409)  — the period is already ended/archived
      AppError(INVALID_DATE_RANGE, 400) — end_date before start_date
    """
    _require_period_manager(group_id, caller_id, session)

    if period_id is None:
        period = get_current_period(group_id, session)
        if period is None:
            raise conflict(ErrorCode.NO_ACTIVE_PERIOD, "There is no active period to end.")
    else:
        period = _get_period_or_404(group_id, period_id, session)

    if period.status != PeriodStatus.ACTIVE:
        raise conflict(
            ErrorCode.PERIOD_NOT_ACTIVE,
            f"Period '{period.name}' is {period.status.value}; only an active period can be ended.",
        )

    _end(period, session, end_date, include_shopping)
    session.flush()

    invalidate_on_commit(session, cache, group_id, period.id)
    logger.info("period %s ended for group %s by user %s", period.id, group_id, caller_id)
    return period


def lock_period(
        group_id: int,
        period_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
) -> Period:
    """Freezes the period's ledger. Allowed on ACTIVE and ENDED periods."""
    _require_period_manager(group_id, caller_id, session)
    period = _get_period_or_404(group_id, period_id, session)

    if period.status == PeriodStatus.ARCHIVED:
        raise conflict(ErrorCode.PERIOD_ARCHIVED, "An archived period cannot be locked.")
    if period.is_locked:
        raise conflict(ErrorCode.PERIOD_LOCKED, f"Period '{period.name}' is already locked.")

    period.is_locked = True
    session.flush()

    invalidate_on_commit(session, cache, group_id, period.id)
    logger.info("period %s locked by user %s", period.id, caller_id)
    return period


def unlock_period(
        group_id: int,
        period_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
        status: PeriodStatus | str = PeriodStatus.ENDED,
) -> Period:
    """
    Clears the lock flag and leaves the period in the status the caller
    picks: ACTIVE or ENDED.

    Raises:
      AppError(PERIOD_NOT_LOCKED, 409)     — nothing to unlock
      AppError(PERIOD_ARCHIVED, 409)       — archived periods stay archived
      AppError(ACTIVE_PERIOD_EXISTS, 409)  — reactivating while another is active
    """
    _require_period_manager(group_id, caller_id, session)
    period = _get_period_or_404(group_id, period_id, session)
    status = PeriodStatus(status)

    if period.status == PeriodStatus.ARCHIVED:
        raise conflict(ErrorCode.PERIOD_ARCHIVED, "An archived period cannot be unlocked.")
    if not period.is_locked:
        raise conflict(ErrorCode.PERIOD_NOT_LOCKED, f"Period '{period.name}' is not locked.")
    if status == PeriodStatus.ARCHIVED:
        raise AppError(
            ErrorCode.INVALID_FIELD,
            "An unlocked period must be left active or ended.",
            400,
            field="status",
        )

    if status == PeriodStatus.ACTIVE and period.status != PeriodStatus.ACTIVE:
        current = get_current_period(group_id, session)
        if current is not None and current.id != period.id:
            raise conflict(
                ErrorCode.ACTIVE_PERIOD_EXISTS,
                "Cannot reactivate this period while another period is active. "
                "End the current period first.",
            )
        period.end_date = None
        period.closing_balance = None

    if status == PeriodStatus.ENDED and period.status == PeriodStatus.ACTIVE:
        _end(period, session, None, include_shopping=False)

    period.status = status
    period.is_locked = False
    try:
        session.flush()
    except IntegrityError as exc:
        name = period.name
        session.rollback()
        raise _period_write_conflict(exc, name) from exc

    invalidate_on_commit(session, cache, group_id, period.id)
    logger.info(
        "period %s unlocked as %s by user %s", period.id, status.value, caller_id,
    )
    return period


def archive_period(
        group_id: int,
        period_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
        include_shopping: bool = False,
) -> Period:
    """ENDED → ARCHIVED. An ACTIVE period is ended today and archived in one step."""
    _require_period_manager(group_id, caller_id, session)
    period = _get_period_or_404(group_id, period_id, session)

    if period.status == PeriodStatus.ARCHIVED:
        raise conflict(ErrorCode.PERIOD_ARCHIVED, f"Period '{period.name}' is already archived.")

    if period.status == PeriodStatus.ACTIVE:
        _end(period, session, None, include_shopping)

    period.status = PeriodStatus.ARCHIVED
    session.flush()

    invalidate_on_commit(session, cache, group_id, period.id)
    logger.info("period %s archived by user %s", period.id, caller_id)
    return period


def restart_period(
        group_id: int,
        caller_id: int,
        period_id: int,
        session: Session,
        cache: CacheStore | None = None,
        name: str | None = None,
        with_data: bool = False,
) -> Period:
    """
    Spawns a new ACTIVE period from an ENDED or ARCHIVED one.

    The new period starts today and copies notes and carry_forward; its
    opening balance is the source's closing balance when carry_forward is
    set. With with_data, every ledger row of the source moves to the new
    period (the source must not be locked).
    """
    _require_period_manager(group_id, caller_id, session)
    source = _get_period_or_404(group_id, period_id, session)

    if source.status == PeriodStatus.ACTIVE:
        raise conflict(
            ErrorCode.ACTIVE_PERIOD_EXISTS,
            f"Period '{source.name}' is still active. End it before restarting it.",
        )
    _raise_if_active_exists(
        group_id,
        session,
        "Cannot restart a period while another period is active. End the current period first.",
    )
    if with_data and source.is_locked:
        raise conflict(
            ErrorCode.PERIOD_LOCKED,
            f"Period '{source.name}' is locked; its data cannot be moved.",
        )

    if name:
        new_name = _unique_name(group_id, name.strip(), session)
    else:
        new_name = _restart_name(group_id, source.name, session)

    opening = source.closing_balance if source.carry_forward and source.closing_balance is not None \
        else Decimal("0.00")

    period = Period(
        group_id=group_id,
        name=new_name,
        start_date=date.today(),
        end_date=None,
        status=PeriodStatus.ACTIVE,
        is_locked=False,
        opening_balance=opening,
        carry_forward=source.carry_forward,
        notes=source.notes,
        created_by=caller_id,
    )
    _insert_active_period(period, session)

    if with_data:
        for model in _LEDGER_MODELS:
            session.execute(
                update(model)
                .where(model.period_id == source.id)
                .values(period_id=period.id)
                .execution_options(synchronize_session="fetch")
            )
        session.flush()

    invalidate_on_commit(session, cache, group_id, period.id)
    logger.info(
        "period %s restarted as %s (with_data=%s) by user %s",
        source.id, period.id, with_data, caller_id,
    )
    return period


def ensure_month_period(
        group_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
        today: date | None = None,
        include_shopping: bool = False,
) -> Period | None:
    """
    Monthly rollover for groups in MONTHLY mode.

    Ends an active period that started before the current month (end date =
    last day of its own month) and starts "<Month YYYY>" on the first of the
    month with carry_forward off. Returns the current period; a no-op
    (returning the active period, if any) in CUSTOM mode. Returns None
    without starting anything when the month's period already exists.
    """
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    current = get_current_period(group_id, session)
    if group.period_mode != PeriodMode.MONTHLY:
        return current

    today = today or date.today()
    month_start = today.replace(day=1)

    if current is not None and current.start_date >= month_start:
        return current

    if current is not None:
        last_day = calendar.monthrange(current.start_date.year, current.start_date.month)[1]
        current.status = PeriodStatus.ENDED
        current.end_date = current.start_date.replace(day=last_day)
        current.closing_balance = _compute_closing_balance(current, session, include_shopping)
        session.flush()
        logger.info("period %s closed by monthly rollover", current.id)

    # A "<Month YYYY>" period that already exists (ended by hand, say) is
    # never started a second time.
    month_name = month_start.strftime("%B %Y")
    if _name_taken(group_id, month_name, session):
        if current is not None:
            invalidate_on_commit(session, cache, group_id, current.id)
        return None

    period = Period(
        group_id=group_id,
        name=month_name,
        start_date=month_start,
        end_date=None,
        status=PeriodStatus.ACTIVE,
        is_locked=False,
        opening_balance=_carried_opening_balance(group_id, session),
        carry_forward=False,
        created_by=caller_id,
    )
    _insert_active_period(period, session)

    invalidate_on_commit(session, cache, group_id, period.id)
    logger.info("monthly period %s started for group %s", period.id, group_id)
    return period


def set_period_mode(
        group_id: int,
        caller_id: int,
        mode: PeriodMode | str,
        session: Session,
        cache: CacheStore | None = None,
) -> dict:
    """Admin only. Switching to MONTHLY runs the rollover immediately."""
    group = get_group_or_404(group_id, session)
    membership = require_member(group_id, caller_id, session)
    if membership.role != Role.ADMIN:
        raise forbidden("Only a group admin can change the period mode.")

    group.period_mode = PeriodMode(mode)
    session.flush()

    current = None
    if group.period_mode == PeriodMode.MONTHLY:
        current = ensure_month_period(group_id, caller_id, session, cache)
    invalidate_on_commit(session, cache, group_id)

    return {
        "group_id": group_id,
        "period_mode": group.period_mode.value,
        "current_period_id": current.id if current is not None else None,
    }


def get_period_summary(
        group_id: int,
        period_id: int,
        caller_id: int,
        session: Session,
        include_shopping: bool = False,
) -> dict:
    """Totals for one period, read straight from the ledger."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    period = _get_period_or_404(group_id, period_id, session)

    scope = {"period_id": period.id}
    meals = ledger_reader.total_meal_count(group_id, session, **scope)
    guest_meals = ledger_reader.total_guest_meal_count(group_id, session, **scope)
    extra = ledger_reader.total_extra_expenses(group_id, session, **scope)
    shopping = ledger_reader.total_shopping_amount(group_id, session, **scope)
    transactions = ledger_reader.total_transactions(group_id, session, **scope)
    payments = ledger_reader.total_completed_payments(group_id, session, **scope)
    members = ledger_reader.get_members(group_id, session)

    return {
        "period_id": period.id,
        "name": period.name,
        "status": period.status.value,
        "is_locked": period.is_locked,
        "start_date": period.start_date,
        "end_date": period.end_date,
        "total_meals": meals,
        "total_guest_meals": guest_meals,
        "total_meal_units": meals + guest_meals,
        "total_extra_expenses": extra,
        "total_shopping": shopping,
        "total_expenses": extra + shopping if include_shopping else extra,
        "total_transactions": transactions,
        "total_completed_payments": payments,
        "member_count": len(members),
        "opening_balance": Decimal(period.opening_balance or 0).quantize(Decimal("0.01")),
        "closing_balance": period.closing_balance,
    }
