"""
schemas/expense_schema.py — Marshmallow schemas for extra expense and
shopping item endpoints.

Validation responsibility:
  - This file: field types, lengths, non-blank text, positive amounts with
    at most 2 decimal places (INVALID_AMOUNT_PRECISION).
  - services/expense_service.py: role checks, item ownership, writable
    period (all need the DB).

A shopping item's `quantity` is its cost in the group currency, so it gets
the same monetary validation as an expense amount.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from mealsphere.app.schemas.validators import (
    validate_non_empty_after_trim,
    validate_positive_amount,
)

_POSITIVE_ID = validate.Range(min=1, error="Identifiers must be positive integers.")

_DESCRIPTION = [
    validate.Length(min=1, max=255, error="Description must be between 1 and 255 characters."),
    validate_non_empty_after_trim,
]

_ITEM_NAME = [
    validate.Length(min=1, max=255, error="Item name must be between 1 and 255 characters."),
    validate_non_empty_after_trim,
]


# ── Extra expenses ─────────────────────────────────────────────────────────

class CreateExtraExpenseSchema(Schema):
    """POST /groups/:id/expenses — date defaults to today."""

    description = fields.Str(required=True, validate=_DESCRIPTION)
    amount = fields.Decimal(required=True, validate=validate_positive_amount)
    date = fields.Date(load_default=None)
    user_id = fields.Int(load_default=None, allow_none=True, strict=True, validate=_POSITIVE_ID)
    period_id = fields.Int(load_default=None, allow_none=True, strict=True, validate=_POSITIVE_ID)


class PatchExtraExpenseSchema(Schema):
    """PATCH /groups/:id/expenses/:eid — only provided fields change."""

    description = fields.Str(validate=_DESCRIPTION)
    amount = fields.Decimal(validate=validate_positive_amount)
    date = fields.Date()


# ── Shopping items ─────────────────────────────────────────────────────────

class CreateShoppingItemSchema(Schema):
    """POST /groups/:id/shopping"""

    name = fields.Str(required=True, validate=_ITEM_NAME)
    quantity = fields.Decimal(required=True, validate=validate_positive_amount)
    unit = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=30))
    date = fields.Date(load_default=None)
    purchased = fields.Bool(load_default=True)
    user_id = fields.Int(load_default=None, allow_none=True, strict=True, validate=_POSITIVE_ID)
    period_id = fields.Int(load_default=None, allow_none=True, strict=True, validate=_POSITIVE_ID)


class PatchShoppingItemSchema(Schema):
    """PATCH /groups/:id/shopping/:item_id"""

    name = fields.Str(validate=_ITEM_NAME)
    quantity = fields.Decimal(validate=validate_positive_amount)
    unit = fields.Str(allow_none=True, validate=validate.Length(max=30))
    date = fields.Date()
    purchased = fields.Bool()
