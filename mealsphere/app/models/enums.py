"""
models/enums.py — Enum definitions shared by models, schemas and services.

Defined here so they can be imported by schemas and services without
pulling in the full model. Do not duplicate these as plain string constants
anywhere else in the codebase.

Every enum is stored by VALUE (lowercase) in a VARCHAR column
(native_enum=False), so the same models run on PostgreSQL and SQLite.
"""

from __future__ import annotations

import enum


class Role(str, enum.Enum):
    ADMIN          = "admin"
    MODERATOR      = "moderator"
    MANAGER        = "manager"
    LEADER         = "leader"
    MEAL_MANAGER   = "meal_manager"
    ACCOUNTANT     = "accountant"
    MARKET_MANAGER = "market_manager"
    MEMBER         = "member"


class PeriodMode(str, enum.Enum):
    MONTHLY = "monthly"
    CUSTOM  = "custom"


class PeriodStatus(str, enum.Enum):
    ACTIVE   = "active"
    ENDED    = "ended"
    ARCHIVED = "archived"


class MealType(str, enum.Enum):
    BREAKFAST = "breakfast"
    LUNCH     = "lunch"
    DINNER    = "dinner"


class TransactionType(str, enum.Enum):
    PAYMENT    = "payment"
    ADJUSTMENT = "adjustment"
    CHARGE     = "charge"
    REFUND     = "refund"


class HistoryAction(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class PaymentMethod(str, enum.Enum):
    CASH           = "cash"
    BANK_TRANSFER  = "bank_transfer"
    MOBILE_BANKING = "mobile_banking"
    CARD           = "card"


class PaymentStatus(str, enum.Enum):
    PENDING   = "pending"
    COMPLETED = "completed"
    FAILED    = "failed"
    CANCELLED = "cancelled"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'active'), not names ('ACTIVE')."""
    return [member.value for member in enum_cls]


def enum_column_type(enum_cls: type[enum.Enum], name: str):
    """VARCHAR-backed Enum type used by every enum column."""
    from sqlalchemy import Enum

    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=20,
        values_callable=enum_values,
        validate_strings=True,
    )
