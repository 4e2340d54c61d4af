"""
services/transaction_service.py — Account transactions and their audit log.

Who may do what (permissions.py holds the tables):

  create  balance-privileged roles (admin, accountant): every type, any target
          every other member: PAYMENT only, and the target must itself be a
          balance-privileged member (money is handed to whoever keeps the
          books)
  update  admin, accountant
  delete  admin only

Every create, update and delete appends one TransactionHistory row in the
same flush. History rows are never modified.

Writes go to the period chosen by require_writable_period and invalidate
the group's calculation cache afterwards.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from mealsphere.app.cache import CacheStore, invalidate_on_commit
from mealsphere.app.errors import ErrorCode, forbidden, not_found, rule_violation
from mealsphere.app.models.account_transaction import AccountTransaction
from mealsphere.app.models.enums import HistoryAction, TransactionType
from mealsphere.app.models.transaction_history import TransactionHistory
from mealsphere.app.services.access import get_group_or_404, require_member, require_target_member
from mealsphere.app.services.period_service import require_writable_period, resolve_period
from mealsphere.app.services.permissions import (
    can_create_transaction,
    can_delete_transactions,
    has_balance_privilege,
)

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _get_transaction_or_404(group_id: int, transaction_id: int, session: Session) -> AccountTransaction:
    txn = session.get(AccountTransaction, transaction_id)
    if txn is None or txn.group_id != group_id:
        raise not_found(ErrorCode.TRANSACTION_NOT_FOUND, "Transaction", transaction_id)
    return txn


def _record_history(
        txn: AccountTransaction,
        action: HistoryAction,
        changed_by: int,
        session: Session,
        previous_amount: Decimal | None = None,
) -> TransactionHistory:
    entry = TransactionHistory(
        group_id=txn.group_id,
        period_id=txn.period_id,
        transaction_id=txn.id if action != HistoryAction.DELETE else None,
        original_transaction_id=txn.id,
        action=action,
        target_user_id=txn.target_user_id,
        amount=txn.amount,
        previous_amount=previous_amount,
        type=txn.type,
        description=txn.description,
        changed_by=changed_by,
    )
    session.add(entry)
    return entry


def _history_dict(entry: TransactionHistory) -> dict:
    return {
        "id": entry.id,
        "transaction_id": entry.original_transaction_id,
        "action": entry.action.value,
        "target_user_id": entry.target_user_id,
        "amount": entry.amount,
        "previous_amount": entry.previous_amount,
        "type": entry.type.value,
        "description": entry.description,
        "changed_by": entry.changed_by,
        "changed_at": entry.changed_at.isoformat() if entry.changed_at else None,
    }


# ── Public service functions ───────────────────────────────────────────────

def create_transaction(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        cache: CacheStore | None = None,
) -> AccountTransaction:
    """
    data: target_user_id, amount (signed, non-zero), type, optional
    description and period_id.

    Raises:
      AppError(TRANSACTION_TYPE_NOT_ALLOWED, 422)   — role may not create this type
      AppError(PAYMENT_TARGET_NOT_PRIVILEGED, 422)  — member paying a non-privileged member
      AppError(MEMBER_NOT_FOUND, 404)               — target is not in the group
    """
    get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)

    txn_type = TransactionType(data["type"])
    if not can_create_transaction(caller.role, txn_type):
        raise rule_violation(
            ErrorCode.TRANSACTION_TYPE_NOT_ALLOWED,
            "Members can only create payment transactions.",
            field="type",
        )

    target = require_target_member(group_id, data["target_user_id"], session)
    if not has_balance_privilege(caller.role) and not has_balance_privilege(target.role):
        raise rule_violation(
            ErrorCode.PAYMENT_TARGET_NOT_PRIVILEGED,
            "Payments can only be made to an admin or accountant of the group.",
            field="target_user_id",
        )

    period = require_writable_period(group_id, session, data.get("period_id"))

    txn = AccountTransaction(
        group_id=group_id,
        period_id=period.id,
        user_id=caller_id,
        target_user_id=target.user_id,
        amount=data["amount"],
        type=txn_type,
        description=data.get("description"),
    )
    session.add(txn)
    session.flush()  # populate txn.id for the history row

    _record_history(txn, HistoryAction.CREATE, caller_id, session)
    session.flush()

    invalidate_on_commit(session, cache, group_id, period.id, target.user_id)
    return txn


def update_transaction(
        group_id: int,
        transaction_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        cache: CacheStore | None = None,
) -> AccountTransaction:
    """data may carry amount, type and description."""
    get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)
    if not has_balance_privilege(caller.role):
        raise forbidden("Only admins and accountants can modify transactions.")

    txn = _get_transaction_or_404(group_id, transaction_id, session)
    require_writable_period(group_id, session, txn.period_id)

    previous_amount = txn.amount
    if "amount" in data:
        txn.amount = data["amount"]
    if "type" in data:
        txn.type = TransactionType(data["type"])
    if "description" in data:
        txn.description = data["description"]
    session.flush()

    _record_history(txn, HistoryAction.UPDATE, caller_id, session, previous_amount=previous_amount)
    session.flush()

    invalidate_on_commit(session, cache, group_id, txn.period_id, txn.target_user_id)
    return txn


def delete_transaction(
        group_id: int,
        transaction_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
) -> None:
    get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)
    if not can_delete_transactions(caller.role):
        raise forbidden("Only a group admin can delete transactions.")

    txn = _get_transaction_or_404(group_id, transaction_id, session)
    require_writable_period(group_id, session, txn.period_id)

    _record_history(txn, HistoryAction.DELETE, caller_id, session, previous_amount=txn.amount)
    period_id, target_user_id = txn.period_id, txn.target_user_id
    session.delete(txn)
    session.flush()

    invalidate_on_commit(session, cache, group_id, period_id, target_user_id)
    logger.info("transaction %s deleted by user %s", transaction_id, caller_id)


def list_transactions(
        group_id: int,
        caller_id: int,
        session: Session,
        period_id: int | None = None,
        user_id: int | None = None,
) -> list[AccountTransaction]:
    """
    Members see transactions they created or that target them; privileged
    roles see every transaction (optionally filtered to one user).
    """
    get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)
    period = resolve_period(group_id, session, period_id)
    if period is None:
        return []

    if not has_balance_privilege(caller.role):
        if user_id is not None and user_id != caller_id:
            raise forbidden("Only admins and accountants can view other members' transactions.")
        user_id = caller_id

    stmt = select(AccountTransaction).where(
        AccountTransaction.group_id == group_id,
        AccountTransaction.period_id == period.id,
        )
    if user_id is not None:
        stmt = stmt.where(or_(
            AccountTransaction.user_id == user_id,
            AccountTransaction.target_user_id == user_id,
        ))
    stmt = stmt.order_by(AccountTransaction.created_at.desc(), AccountTransaction.id.desc())
    return list(session.execute(stmt).scalars().all())


def get_transaction_history(
        group_id: int,
        transaction_id: int,
        caller_id: int,
        session: Session,
) -> list[dict]:
    """
    Audit trail of one transaction, oldest first. Available after the
    transaction is deleted. Members may read the history of transactions
    that target them; privileged roles may read any.
    """
    get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)

    entries = list(session.execute(
        select(TransactionHistory)
        .where(
            TransactionHistory.group_id == group_id,
            TransactionHistory.original_transaction_id == transaction_id,
            )
        .order_by(TransactionHistory.id.asc())
    ).scalars().all())

    if not entries:
        raise not_found(ErrorCode.TRANSACTION_NOT_FOUND, "Transaction", transaction_id)

    if not has_balance_privilege(caller.role) and entries[0].target_user_id != caller_id:
        raise forbidden("You can only view the history of your own transactions.")

    return [_history_dict(e) for e in entries]
