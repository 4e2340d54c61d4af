"""
schemas/validators.py — Field validators shared by the request schemas.

Amounts with more than 2 decimal places are REJECTED with
INVALID_AMOUNT_PRECISION, never rounded; the columns are NUMERIC(12, 2).
The global ValidationError handler turns a message that equals a registered
ErrorCode into that code.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import ValidationError

from mealsphere.app.errors import ErrorCode


def _check_precision(value: Decimal) -> None:
    # Decimal("10.123").as_tuple().exponent == -3  → 3 dp → reject
    exponent = value.as_tuple().exponent
    if isinstance(exponent, int) and exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def validate_positive_amount(value: Decimal) -> None:
    """Strictly positive, at most 2 dp. Expenses and payments."""
    if not value.is_finite() or value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")
    _check_precision(value)


def validate_signed_amount(value: Decimal) -> None:
    """Non-zero, at most 2 dp. Transactions carry their direction in the sign."""
    if not value.is_finite() or value == Decimal("0"):
        raise ValidationError("Amount must not be zero.")
    _check_precision(value)


def validate_balance_amount(value: Decimal) -> None:
    """Any finite value with at most 2 dp, zero and negatives included."""
    if not value.is_finite():
        raise ValidationError("Amount must be a finite number.")
    _check_precision(value)


def validate_non_empty_after_trim(value: str) -> None:
    """validate.Length(min=1) alone lets "   " through."""
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")
