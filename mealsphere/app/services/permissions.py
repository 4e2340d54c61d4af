"""
services/permissions.py — Role capability tables.

Every role check in the service layer goes through a function here so that
the rules live in one table each and can be tested exhaustively over the
full role × action matrix.

Pure functions of a Role (and, for transactions, a TransactionType).
No session, no Flask, no side effects.
"""

from __future__ import annotations

from mealsphere.app.models.enums import Role, TransactionType


PERIOD_MANAGERS = frozenset({Role.ADMIN, Role.MANAGER, Role.MODERATOR})

# May read any member's balance, create every transaction type and edit
# transactions.
BALANCE_PRIVILEGED = frozenset({Role.ADMIN, Role.ACCOUNTANT})

TRANSACTION_DELETERS = frozenset({Role.ADMIN})

MEAL_MANAGERS = frozenset({Role.ADMIN, Role.MANAGER, Role.MEAL_MANAGER})

EXPENSE_MANAGERS = frozenset({
    Role.ADMIN,
    Role.MANAGER,
    Role.ACCOUNTANT,
    Role.MARKET_MANAGER,
})

MEMBER_MANAGERS = frozenset({Role.ADMIN, Role.MODERATOR})

# Transaction types each role may create. Roles not listed fall back to
# _DEFAULT_TRANSACTION_TYPES.
_ALL_TRANSACTION_TYPES = frozenset(TransactionType)
_DEFAULT_TRANSACTION_TYPES = frozenset({TransactionType.PAYMENT})

_TRANSACTION_CAPABILITIES: dict[Role, frozenset[TransactionType]] = {
    role: _ALL_TRANSACTION_TYPES for role in BALANCE_PRIVILEGED
}


def _as_role(role) -> Role:
    return role if isinstance(role, Role) else Role(role)


def can_manage_periods(role) -> bool:
    return _as_role(role) in PERIOD_MANAGERS


def has_balance_privilege(role) -> bool:
    return _as_role(role) in BALANCE_PRIVILEGED


def can_delete_transactions(role) -> bool:
    return _as_role(role) in TRANSACTION_DELETERS


def can_manage_meals(role) -> bool:
    """True if the role may add or remove meals on behalf of other members."""
    return _as_role(role) in MEAL_MANAGERS


def can_manage_expenses(role) -> bool:
    return _as_role(role) in EXPENSE_MANAGERS


def can_manage_members(role) -> bool:
    return _as_role(role) in MEMBER_MANAGERS


def allowed_transaction_types(role) -> frozenset[TransactionType]:
    return _TRANSACTION_CAPABILITIES.get(_as_role(role), _DEFAULT_TRANSACTION_TYPES)


def can_create_transaction(role, transaction_type) -> bool:
    """
    (role, transaction type) → allowed.

    Balance-privileged roles may create every type; everyone else may only
    record a payment. Whether a member's payment targets a privileged member
    is a separate check in transaction_service (it needs the target's role).
    """
    if not isinstance(transaction_type, TransactionType):
        transaction_type = TransactionType(transaction_type)
    return transaction_type in allowed_transaction_types(role)
