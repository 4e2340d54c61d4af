"""
tests/unit/test_validation_schemas.py — Unit tests for the request schemas.

What this file proves:
  - Every schema accepts valid input and fills its defaults
  - Field-level rules (types, lengths, enums, amount sign and precision,
    date order) are enforced by the schemas
  - Error codes carried by ValidationError messages are registered codes

No database and no Flask application context: request schemas inherit from
marshmallow.Schema directly (see extensions.py).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from marshmallow import ValidationError

from mealsphere.app.errors import ErrorCode
from mealsphere.app.models.enums import (
    MealType,
    PaymentMethod,
    PaymentStatus,
    PeriodMode,
    PeriodStatus,
    Role,
    TransactionType,
)
from mealsphere.app.schemas.auth_schema import LoginSchema, RegisterSchema, UpdateProfileSchema
from mealsphere.app.schemas.expense_schema import (
    CreateExtraExpenseSchema,
    CreateShoppingItemSchema,
    PatchShoppingItemSchema,
)
from mealsphere.app.schemas.group_schema import (
    AddMemberSchema,
    CreateGroupSchema,
    UpdateMemberRoleSchema,
)
from mealsphere.app.schemas.meal_schema import (
    CreateGuestMealSchema,
    CreateMealSchema,
    UpdateGuestMealSchema,
)
from mealsphere.app.schemas.period_schema import (
    CreatePeriodSchema,
    RestartPeriodSchema,
    UnlockPeriodSchema,
)
from mealsphere.app.schemas.transaction_schema import (
    CreatePaymentSchema,
    CreateTransactionSchema,
    PatchTransactionSchema,
)


# ═══════════════════════════════════════════════════════════════════════════
# Auth
# ═══════════════════════════════════════════════════════════════════════════

class TestRegisterSchema:

    def _load(self, **overrides):
        data = {"name": "Alice", "email": "alice@example.com", "password": "Secure123"}
        data.update(overrides)
        return RegisterSchema().load(data)

    def test_valid_payload(self):
        result = self._load()
        assert result["name"] == "Alice"
        assert result["email"] == "alice@example.com"

    def test_blank_name_raises(self):
        with pytest.raises(ValidationError) as exc:
            self._load(name="   ")
        assert "name" in exc.value.messages

    def test_invalid_email_raises(self):
        with pytest.raises(ValidationError) as exc:
            self._load(email="not-an-email")
        assert "email" in exc.value.messages

    @pytest.mark.parametrize("password", ["Short1", "lettersonly", "12345678"])
    def test_weak_password_raises(self, password):
        with pytest.raises(ValidationError) as exc:
            self._load(password=password)
        assert "password" in exc.value.messages

    def test_missing_fields_raise(self):
        with pytest.raises(ValidationError) as exc:
            RegisterSchema().load({})
        assert set(exc.value.messages) == {"name", "email", "password"}

    def test_image_must_be_a_url(self):
        with pytest.raises(ValidationError) as exc:
            self._load(image="not a url")
        assert "image" in exc.value.messages


def test_login_requires_email_and_password():
    with pytest.raises(ValidationError) as exc:
        LoginSchema().load({"email": "alice@example.com"})
    assert "password" in exc.value.messages


class TestUpdateProfileSchema:

    def test_partial_payload_keeps_only_sent_fields(self):
        assert UpdateProfileSchema().load({"name": "Al"}) == {"name": "Al"}

    def test_image_can_be_cleared(self):
        assert UpdateProfileSchema().load({"image": None}) == {"image": None}

    def test_empty_payload_raises(self):
        with pytest.raises(ValidationError) as exc:
            UpdateProfileSchema().load({})
        assert "name" in exc.value.messages


# ═══════════════════════════════════════════════════════════════════════════
# Groups
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateGroupSchema:

    def test_defaults(self):
        result = CreateGroupSchema().load({"name": "Flat 4B"})
        assert result["is_private"] is False
        assert result["password"] is None
        assert result["max_members"] is None
        assert result["period_mode"] == PeriodMode.CUSTOM

    def test_monthly_mode_by_value(self):
        result = CreateGroupSchema().load({"name": "Flat 4B", "period_mode": "monthly"})
        assert result["period_mode"] == PeriodMode.MONTHLY

    def test_unknown_period_mode_raises(self):
        with pytest.raises(ValidationError) as exc:
            CreateGroupSchema().load({"name": "Flat 4B", "period_mode": "weekly"})
        assert "period_mode" in exc.value.messages

    def test_float_max_members_raises(self):
        with pytest.raises(ValidationError) as exc:
            CreateGroupSchema().load({"name": "Flat 4B", "max_members": 5.0})
        assert "max_members" in exc.value.messages

    def test_short_password_raises(self):
        with pytest.raises(ValidationError) as exc:
            CreateGroupSchema().load({"name": "Flat 4B", "is_private": True, "password": "abc"})
        assert "password" in exc.value.messages


class TestMemberSchemas:

    def test_add_member_defaults_to_member_role(self):
        assert AddMemberSchema().load({"user_id": 3})["role"] == Role.MEMBER

    def test_add_member_rejects_string_id(self):
        with pytest.raises(ValidationError):
            AddMemberSchema().load({"user_id": "3"})

    def test_role_update_requires_known_role(self):
        with pytest.raises(ValidationError) as exc:
            UpdateMemberRoleSchema().load({"role": "owner"})
        assert "role" in exc.value.messages

    def test_role_update_accepts_accountant(self):
        assert UpdateMemberRoleSchema().load({"role": "accountant"})["role"] == Role.ACCOUNTANT


# ═══════════════════════════════════════════════════════════════════════════
# Periods
# ═══════════════════════════════════════════════════════════════════════════

class TestCreatePeriodSchema:

    def test_minimal_payload(self):
        result = CreatePeriodSchema().load({"name": "March"})
        assert result["start_date"] is None
        assert result["opening_balance"] is None
        assert result["carry_forward"] is False

    def test_end_before_start_raises_date_range_code(self):
        with pytest.raises(ValidationError) as exc:
            CreatePeriodSchema().load({
                "name": "March",
                "start_date": "2026-03-31",
                "end_date": "2026-03-01",
            })
        assert exc.value.messages == {"end_date": [ErrorCode.INVALID_DATE_RANGE]}

    def test_end_equal_to_start_raises(self):
        with pytest.raises(ValidationError):
            CreatePeriodSchema().load({
                "name": "March",
                "start_date": "2026-03-01",
                "end_date": "2026-03-01",
            })

    def test_negative_opening_balance_is_allowed(self):
        result = CreatePeriodSchema().load({"name": "March", "opening_balance": "-20.50"})
        assert result["opening_balance"] == Decimal("-20.50")

    def test_opening_balance_precision(self):
        with pytest.raises(ValidationError) as exc:
            CreatePeriodSchema().load({"name": "March", "opening_balance": "1.005"})
        assert exc.value.messages["opening_balance"] == [ErrorCode.INVALID_AMOUNT_PRECISION]


class TestUnlockAndRestartSchemas:

    def test_unlock_defaults_to_ended(self):
        assert UnlockPeriodSchema().load({})["status"] == PeriodStatus.ENDED

    def test_unlock_to_active(self):
        assert UnlockPeriodSchema().load({"status": "active"})["status"] == PeriodStatus.ACTIVE

    def test_unlock_to_archived_raises(self):
        with pytest.raises(ValidationError) as exc:
            UnlockPeriodSchema().load({"status": "archived"})
        assert "status" in exc.value.messages

    def test_restart_defaults(self):
        assert RestartPeriodSchema().load({}) == {"name": None, "with_data": False}


# ═══════════════════════════════════════════════════════════════════════════
# Meals
# ═══════════════════════════════════════════════════════════════════════════

class TestMealSchemas:

    def test_meal_payload(self):
        result = CreateMealSchema().load({"date": "2026-03-02", "meal_type": "lunch"})
        assert result["date"] == date(2026, 3, 2)
        assert result["meal_type"] == MealType.LUNCH
        assert result["user_id"] is None

    def test_unknown_meal_type_raises(self):
        with pytest.raises(ValidationError) as exc:
            CreateMealSchema().load({"date": "2026-03-02", "meal_type": "snack"})
        assert "meal_type" in exc.value.messages

    def test_invalid_date_raises(self):
        with pytest.raises(ValidationError) as exc:
            CreateMealSchema().load({"date": "02/03/2026", "meal_type": "lunch"})
        assert "date" in exc.value.messages

    def test_guest_count_defaults_to_one(self):
        result = CreateGuestMealSchema().load({"date": "2026-03-02", "meal_type": "dinner"})
        assert result["count"] == 1

    def test_guest_count_must_be_positive(self):
        with pytest.raises(ValidationError) as exc:
            CreateGuestMealSchema().load({"date": "2026-03-02", "meal_type": "dinner", "count": 0})
        assert "count" in exc.value.messages

    def test_guest_update_requires_count(self):
        with pytest.raises(ValidationError):
            UpdateGuestMealSchema().load({})


# ═══════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════

class TestExpenseSchemas:

    def test_amount_is_decimal(self):
        result = CreateExtraExpenseSchema().load({"description": "Gas", "amount": "120.50"})
        assert result["amount"] == Decimal("120.50")
        assert isinstance(result["amount"], Decimal)

    @pytest.mark.parametrize("amount", ["0", "0.00", "-5.00"])
    def test_non_positive_amount_raises(self, amount):
        with pytest.raises(ValidationError) as exc:
            CreateExtraExpenseSchema().load({"description": "Gas", "amount": amount})
        assert "amount" in exc.value.messages

    def test_three_decimal_places_raise_precision_code(self):
        with pytest.raises(ValidationError) as exc:
            CreateExtraExpenseSchema().load({"description": "Gas", "amount": "10.123"})
        assert exc.value.messages["amount"] == [ErrorCode.INVALID_AMOUNT_PRECISION]

    def test_blank_description_raises(self):
        with pytest.raises(ValidationError) as exc:
            CreateExtraExpenseSchema().load({"description": "  ", "amount": "1.00"})
        assert "description" in exc.value.messages

    def test_shopping_item_defaults_to_purchased(self):
        result = CreateShoppingItemSchema().load({"name": "Rice", "quantity": "450.00"})
        assert result["purchased"] is True
        assert result["unit"] is None

    def test_shopping_patch_accepts_partial_payload(self):
        assert PatchShoppingItemSchema().load({"purchased": False}) == {"purchased": False}


class TestTransactionSchemas:

    def test_defaults_to_payment(self):
        result = CreateTransactionSchema().load({"target_user_id": 1, "amount": "500.00"})
        assert result["type"] == TransactionType.PAYMENT

    def test_negative_amount_is_allowed(self):
        result = CreateTransactionSchema().load({
            "target_user_id": 1,
            "amount": "-25.00",
            "type": "adjustment",
        })
        assert result["amount"] == Decimal("-25.00")

    def test_zero_amount_raises(self):
        with pytest.raises(ValidationError) as exc:
            CreateTransactionSchema().load({"target_user_id": 1, "amount": "0"})
        assert "amount" in exc.value.messages

    def test_precision_code(self):
        with pytest.raises(ValidationError) as exc:
            PatchTransactionSchema().load({"amount": "1.999"})
        assert exc.value.messages["amount"] == [ErrorCode.INVALID_AMOUNT_PRECISION]

    def test_payment_defaults(self):
        result = CreatePaymentSchema().load({"amount": "300.00"})
        assert result["method"] == PaymentMethod.CASH
        assert result["status"] == PaymentStatus.COMPLETED

    def test_payment_rejects_unknown_method(self):
        with pytest.raises(ValidationError) as exc:
            CreatePaymentSchema().load({"amount": "300.00", "method": "cheque"})
        assert "method" in exc.value.messages
