"""
schemas/transaction_schema.py — Marshmallow schemas for account transactions
and payments.

Transaction amounts are signed: a positive amount credits the target's
balance, a negative one debits it. Zero is rejected. Payment amounts are
strictly positive.

Who may create which transaction type, and to whom a member may pay, is
checked in transaction_service.py.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from mealsphere.app.models.enums import PaymentMethod, PaymentStatus, TransactionType
from mealsphere.app.schemas.validators import validate_positive_amount, validate_signed_amount

_POSITIVE_ID = validate.Range(min=1, error="Identifiers must be positive integers.")


class CreateTransactionSchema(Schema):
    """POST /groups/:id/transactions"""

    target_user_id = fields.Int(required=True, strict=True, validate=_POSITIVE_ID)
    amount = fields.Decimal(required=True, validate=validate_signed_amount)
    type = fields.Enum(TransactionType, by_value=True, load_default=TransactionType.PAYMENT)
    description = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=255))
    period_id = fields.Int(load_default=None, allow_none=True, strict=True, validate=_POSITIVE_ID)


class PatchTransactionSchema(Schema):
    """PATCH /groups/:id/transactions/:tid (admin or accountant)"""

    amount = fields.Decimal(validate=validate_signed_amount)
    type = fields.Enum(TransactionType, by_value=True)
    description = fields.Str(allow_none=True, validate=validate.Length(max=255))


class CreatePaymentSchema(Schema):
    """POST /groups/:id/payments — user_id defaults to the caller."""

    amount = fields.Decimal(required=True, validate=validate_positive_amount)
    method = fields.Enum(PaymentMethod, by_value=True, load_default=PaymentMethod.CASH)
    status = fields.Enum(PaymentStatus, by_value=True, load_default=PaymentStatus.COMPLETED)
    date = fields.Date(load_default=None)
    description = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=255))
    user_id = fields.Int(load_default=None, allow_none=True, strict=True, validate=_POSITIVE_ID)
    period_id = fields.Int(load_default=None, allow_none=True, strict=True, validate=_POSITIVE_ID)


class UpdatePaymentStatusSchema(Schema):
    """PATCH /groups/:id/payments/:pid/status"""

    status = fields.Enum(PaymentStatus, by_value=True, required=True)
