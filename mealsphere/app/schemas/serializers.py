"""
schemas/serializers.py — Response serializers for ledger and period rows.

These are dump-only and run inside request handlers, so they use ma.Schema
(flask-marshmallow). Request validation lives in the *_schema.py modules.

Money is dumped as a string ("12.50") and enums by value ("lunch").
Computed outputs (balances, meal rate, settlement) are plain dicts built by
the services and are not serialized here.
"""

from __future__ import annotations

from marshmallow import fields

from mealsphere.app.extensions import ma
from mealsphere.app.models.enums import (
    MealType,
    PaymentMethod,
    PaymentStatus,
    PeriodStatus,
    TransactionType,
)


class PeriodSerializer(ma.Schema):
    id = fields.Int()
    group_id = fields.Int()
    name = fields.Str()
    start_date = fields.Date()
    end_date = fields.Date(allow_none=True)
    status = fields.Enum(PeriodStatus, by_value=True)
    is_locked = fields.Bool()
    opening_balance = fields.Decimal(as_string=True)
    closing_balance = fields.Decimal(as_string=True, allow_none=True)
    carry_forward = fields.Bool()
    notes = fields.Str(allow_none=True)
    created_by = fields.Int(allow_none=True)
    created_at = fields.DateTime()


class MealSerializer(ma.Schema):
    id = fields.Int()
    group_id = fields.Int()
    period_id = fields.Int()
    user_id = fields.Int()
    date = fields.Date()
    meal_type = fields.Enum(MealType, by_value=True)
    created_at = fields.DateTime()


class GuestMealSerializer(MealSerializer):
    count = fields.Int()


class ExtraExpenseSerializer(ma.Schema):
    id = fields.Int()
    group_id = fields.Int()
    period_id = fields.Int()
    user_id = fields.Int()
    description = fields.Str()
    amount = fields.Decimal(as_string=True)
    date = fields.Date()
    created_at = fields.DateTime()


class ShoppingItemSerializer(ma.Schema):
    id = fields.Int()
    group_id = fields.Int()
    period_id = fields.Int()
    user_id = fields.Int()
    name = fields.Str()
    quantity = fields.Decimal(as_string=True)
    unit = fields.Str(allow_none=True)
    date = fields.Date()
    purchased = fields.Bool()
    created_at = fields.DateTime()


class TransactionSerializer(ma.Schema):
    id = fields.Int()
    group_id = fields.Int()
    period_id = fields.Int()
    user_id = fields.Int()
    target_user_id = fields.Int()
    amount = fields.Decimal(as_string=True)
    type = fields.Enum(TransactionType, by_value=True)
    description = fields.Str(allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime(allow_none=True)


class PaymentSerializer(ma.Schema):
    id = fields.Int()
    group_id = fields.Int()
    period_id = fields.Int()
    user_id = fields.Int()
    amount = fields.Decimal(as_string=True)
    method = fields.Enum(PaymentMethod, by_value=True)
    status = fields.Enum(PaymentStatus, by_value=True)
    date = fields.Date()
    description = fields.Str(allow_none=True)
    created_at = fields.DateTime()


period_serializer = PeriodSerializer()
periods_serializer = PeriodSerializer(many=True)
meal_serializer = MealSerializer()
meals_serializer = MealSerializer(many=True)
guest_meal_serializer = GuestMealSerializer()
guest_meals_serializer = GuestMealSerializer(many=True)
expense_serializer = ExtraExpenseSerializer()
expenses_serializer = ExtraExpenseSerializer(many=True)
shopping_item_serializer = ShoppingItemSerializer()
shopping_items_serializer = ShoppingItemSerializer(many=True)
transaction_serializer = TransactionSerializer()
transactions_serializer = TransactionSerializer(many=True)
payment_serializer = PaymentSerializer()
payments_serializer = PaymentSerializer(many=True)
