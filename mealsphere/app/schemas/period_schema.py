"""
schemas/period_schema.py — Marshmallow schemas for period lifecycle endpoints.

Validation responsibility:
  - This file: field types, date order on create, unlock target status.
  - services/period_service.py: one-active-period rule, role checks, state
    transitions (all need the DB).

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from mealsphere.app.errors import ErrorCode
from mealsphere.app.models.enums import PeriodStatus
from mealsphere.app.schemas.validators import (
    validate_balance_amount,
    validate_non_empty_after_trim,
)

_PERIOD_NAME = [
    validate.Length(min=1, max=100, error="Period name must be between 1 and 100 characters."),
    validate_non_empty_after_trim,
]


class CreatePeriodSchema(Schema):
    """
    POST /groups/:id/periods

    opening_balance omitted → carried forward from the last closed period
    when that period has carry_forward set, otherwise 0.
    """

    name = fields.Str(required=True, validate=_PERIOD_NAME)
    start_date = fields.Date(load_default=None)
    end_date = fields.Date(load_default=None, allow_none=True)
    opening_balance = fields.Decimal(
        load_default=None,
        allow_none=True,
        validate=validate_balance_amount,
    )
    carry_forward = fields.Bool(load_default=False)
    notes = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=1000))

    @validates_schema
    def validate_date_order(self, data: dict, **kwargs) -> None:
        start, end = data.get("start_date"), data.get("end_date")
        if start is not None and end is not None and end <= start:
            raise ValidationError({"end_date": [ErrorCode.INVALID_DATE_RANGE]})


class EndPeriodSchema(Schema):
    """POST /groups/:id/periods/:pid/end — end_date defaults to today."""

    end_date = fields.Date(load_default=None, allow_none=True)


class UnlockPeriodSchema(Schema):
    """POST /groups/:id/periods/:pid/unlock"""

    status = fields.Enum(
        PeriodStatus,
        by_value=True,
        load_default=PeriodStatus.ENDED,
        validate=validate.OneOf(
            [PeriodStatus.ACTIVE, PeriodStatus.ENDED],
            error="status must be 'active' or 'ended'.",
        ),
    )


class RestartPeriodSchema(Schema):
    """
    POST /groups/:id/periods/:pid/restart

    with_data=True moves the source period's ledger rows into the new one.
    """

    name = fields.Str(load_default=None, allow_none=True, validate=_PERIOD_NAME)
    with_data = fields.Bool(load_default=False)
