"""
schemas/meal_schema.py — Marshmallow schemas for meal and guest-meal endpoints.

The date-inside-period rule, duplicate slots and the guest limit are
checked in meal_service.py because they need the period and the ledger.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from mealsphere.app.models.enums import MealType

_POSITIVE_ID = validate.Range(min=1, error="Identifiers must be positive integers.")


class CreateMealSchema(Schema):
    """POST /groups/:id/meals — user_id defaults to the caller."""

    date = fields.Date(required=True)
    meal_type = fields.Enum(MealType, by_value=True, required=True)
    user_id = fields.Int(load_default=None, allow_none=True, strict=True, validate=_POSITIVE_ID)
    period_id = fields.Int(load_default=None, allow_none=True, strict=True, validate=_POSITIVE_ID)


class CreateGuestMealSchema(Schema):
    """POST /groups/:id/guest-meals"""

    date = fields.Date(required=True)
    meal_type = fields.Enum(MealType, by_value=True, required=True)
    count = fields.Int(
        load_default=1,
        strict=True,
        validate=validate.Range(min=1, error="count must be at least 1."),
    )
    user_id = fields.Int(load_default=None, allow_none=True, strict=True, validate=_POSITIVE_ID)
    period_id = fields.Int(load_default=None, allow_none=True, strict=True, validate=_POSITIVE_ID)


class UpdateGuestMealSchema(Schema):
    """PATCH /groups/:id/guest-meals/:gid — only the count may change."""

    count = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="count must be at least 1."),
    )


class UpdateMealSettingsSchema(Schema):
    """
    PATCH /groups/:id/meal-settings — every field optional; only the keys
    sent are changed. guest_meal_limit null returns to the configured limit.
    """

    auto_meal_enabled = fields.Bool()
    max_meals_per_day = fields.Int(
        strict=True,
        validate=validate.Range(min=1, max=3, error="max_meals_per_day must be between 1 and 3."),
    )
    allow_guest_meals = fields.Bool()
    guest_meal_limit = fields.Int(
        allow_none=True,
        strict=True,
        validate=validate.Range(min=0, max=100, error="guest_meal_limit must be between 0 and 100."),
    )


class UpdateAutoMealSettingsSchema(Schema):
    """PATCH /groups/:id/auto-meal-settings — the caller's own standing order."""

    is_enabled = fields.Bool()
    breakfast_enabled = fields.Bool()
    lunch_enabled = fields.Bool()
    dinner_enabled = fields.Bool()
    guest_meal_enabled = fields.Bool()
    excluded_dates = fields.List(fields.Date(), validate=validate.Length(max=366))


class TriggerAutoMealsSchema(Schema):
    """POST /groups/:id/meals/auto — date defaults to today."""

    date = fields.Date(load_default=None, allow_none=True)
