"""
services/payment_service.py — Payment records.

Payments are a member-facing receipt log (method, status, amount, date).
They feed the "completed payments" figure of a period summary but never a
balance: balances come from AccountTransaction only.

Authorization:
  - create: any member for themselves; admin/accountant for anyone
  - update status: admin/accountant
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from mealsphere.app.cache import CacheStore, invalidate_on_commit
from mealsphere.app.errors import ErrorCode, forbidden, not_found
from mealsphere.app.models.enums import PaymentMethod, PaymentStatus
from mealsphere.app.models.payment import Payment
from mealsphere.app.services.access import get_group_or_404, require_member, require_target_member
from mealsphere.app.services.period_service import require_writable_period, resolve_period
from mealsphere.app.services.permissions import has_balance_privilege


def _get_payment_or_404(group_id: int, payment_id: int, session: Session) -> Payment:
    payment = session.get(Payment, payment_id)
    if payment is None or payment.group_id != group_id:
        raise not_found(ErrorCode.PAYMENT_NOT_FOUND, "Payment", payment_id)
    return payment


def create_payment(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        cache: CacheStore | None = None,
) -> Payment:
    """data: amount, optional method, status, date, description, user_id, period_id."""
    get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)

    payer_id = data.get("user_id") or caller_id
    if payer_id != caller_id:
        if not has_balance_privilege(caller.role):
            raise forbidden("Only admins and accountants can record payments for other members.")
        require_target_member(group_id, payer_id, session)

    period = require_writable_period(group_id, session, data.get("period_id"))

    payment = Payment(
        group_id=group_id,
        period_id=period.id,
        user_id=payer_id,
        amount=data["amount"],
        method=PaymentMethod(data.get("method", PaymentMethod.CASH)),
        status=PaymentStatus(data.get("status", PaymentStatus.COMPLETED)),
        date=data.get("date") or date.today(),
        description=data.get("description"),
    )
    session.add(payment)
    session.flush()

    invalidate_on_commit(session, cache, group_id, period.id, payer_id)
    return payment


def update_payment_status(
        group_id: int,
        payment_id: int,
        caller_id: int,
        status: PaymentStatus | str,
        session: Session,
        cache: CacheStore | None = None,
) -> Payment:
    get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)
    if not has_balance_privilege(caller.role):
        raise forbidden("Only admins and accountants can change a payment's status.")

    payment = _get_payment_or_404(group_id, payment_id, session)
    require_writable_period(group_id, session, payment.period_id)

    payment.status = PaymentStatus(status)
    session.flush()

    invalidate_on_commit(session, cache, group_id, payment.period_id, payment.user_id)
    return payment


def list_payments(
        group_id: int,
        caller_id: int,
        session: Session,
        period_id: int | None = None,
) -> list[Payment]:
    """Privileged roles see every payment; members see their own."""
    get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)
    period = resolve_period(group_id, session, period_id)
    if period is None:
        return []

    stmt = select(Payment).where(Payment.group_id == group_id, Payment.period_id == period.id)
    if not has_balance_privilege(caller.role):
        stmt = stmt.where(Payment.user_id == caller_id)
    stmt = stmt.order_by(Payment.date.desc(), Payment.id.desc())
    return list(session.execute(stmt).scalars().all())
