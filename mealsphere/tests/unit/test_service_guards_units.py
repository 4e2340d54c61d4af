"""
Unit tests for authorization and rule guards across the ledger services.

DB-free: every lookup is either answered by a MagicMock session or patched
on the service module that imported it.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from mealsphere.app.errors import AppError, ErrorCode
from mealsphere.app.models.enums import Role
from mealsphere.app.services import (
    access,
    auth_service,
    balance_service,
    group_service,
    meal_service,
    passwords,
    transaction_service,
)

SERVICES = "mealsphere.app.services"


def _member(role: Role, user_id: int = 1, banned: bool = False):
    return SimpleNamespace(role=role, user_id=user_id, is_banned=banned)


# ═══════════════════════════════════════════════════════════════════════════
# access
# ═══════════════════════════════════════════════════════════════════════════

class TestAccess:

    def test_get_group_or_404_raises_when_group_missing(self):
        session = MagicMock()
        session.get.return_value = None

        with pytest.raises(AppError) as exc_info:
            access.get_group_or_404(group_id=404, session=session)

        assert exc_info.value.code == ErrorCode.GROUP_NOT_FOUND
        assert exc_info.value.http_status == 404

    def test_require_member_returns_membership(self):
        session = MagicMock()
        membership = _member(Role.MEMBER)
        session.execute.return_value.scalar_one_or_none.return_value = membership

        assert access.require_member(group_id=1, user_id=10, session=session) is membership

    def test_require_member_raises_forbidden_for_non_member(self):
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = None

        with pytest.raises(AppError) as exc_info:
            access.require_member(group_id=1, user_id=999, session=session)

        assert exc_info.value.code == ErrorCode.FORBIDDEN
        assert exc_info.value.http_status == 403

    def test_banned_member_is_forbidden(self):
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = _member(Role.MEMBER, banned=True)

        with pytest.raises(AppError) as exc_info:
            access.require_member(group_id=1, user_id=10, session=session)

        assert exc_info.value.http_status == 403

    def test_missing_target_is_member_not_found(self):
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = None

        with pytest.raises(AppError) as exc_info:
            access.require_target_member(group_id=1, user_id=5, session=session)

        assert exc_info.value.code == ErrorCode.MEMBER_NOT_FOUND
        assert exc_info.value.http_status == 404


# ═══════════════════════════════════════════════════════════════════════════
# auth_service
# ═══════════════════════════════════════════════════════════════════════════

class TestAuthService:

    def test_get_current_user_returns_serialized_user(self):
        session = MagicMock()
        created_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
        session.get.return_value = SimpleNamespace(
            id=7,
            name="Alice",
            email="alice@example.com",
            image=None,
            created_at=created_at,
        )

        result = auth_service.get_current_user(user_id=7, session=session)

        assert result == {
            "id": 7,
            "name": "Alice",
            "email": "alice@example.com",
            "image": None,
            "created_at": created_at.isoformat(),
        }

    def test_get_current_user_raises_user_not_found(self):
        session = MagicMock()
        session.get.return_value = None

        with pytest.raises(AppError) as exc_info:
            auth_service.get_current_user(user_id=99999, session=session)

        assert exc_info.value.code == ErrorCode.USER_NOT_FOUND

    def test_refresh_with_unknown_token_is_rejected(self):
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = None

        with pytest.raises(AppError) as exc_info:
            auth_service.refresh_access_token("nope", session)

        assert exc_info.value.code == ErrorCode.REFRESH_TOKEN_INVALID
        assert exc_info.value.http_status == 401

    def test_logout_twice_is_rejected(self):
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = SimpleNamespace(revoked=True)

        with pytest.raises(AppError) as exc_info:
            auth_service.logout_user("raw", session)

        assert exc_info.value.code == ErrorCode.REFRESH_TOKEN_INVALID

    def test_naive_expiry_is_read_as_utc(self):
        naive = datetime(2026, 1, 1, 12, 0)
        assert auth_service._as_utc(naive).tzinfo == timezone.utc


# ═══════════════════════════════════════════════════════════════════════════
# group_service
# ═══════════════════════════════════════════════════════════════════════════

class TestGroupService:

    def test_private_group_needs_a_password(self):
        with pytest.raises(AppError) as exc_info:
            group_service.create_group(1, {"name": "Flat", "is_private": True}, MagicMock())

        assert exc_info.value.code == ErrorCode.MISSING_FIELD
        assert exc_info.value.field == "password"

    @patch(f"{SERVICES}.group_service.get_group_or_404")
    def test_wrong_group_password_is_rejected(self, mock_group):
        mock_group.return_value = SimpleNamespace(
            id=1,
            is_private=True,
            password_hash=passwords.hash_password("secret", 4),
        )

        with pytest.raises(AppError) as exc_info:
            group_service.join_group(1, 2, MagicMock(), password="guess")

        assert exc_info.value.code == ErrorCode.INVALID_GROUP_PASSWORD
        assert exc_info.value.http_status == 422

    def test_full_group_rejects_new_member(self):
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = None
        group = SimpleNamespace(id=1, member_count=3, max_members=3)

        with pytest.raises(AppError) as exc_info:
            group_service._add_membership(group, 9, Role.MEMBER, session)

        assert exc_info.value.code == ErrorCode.GROUP_FULL
        session.add.assert_not_called()

    def test_existing_member_cannot_be_added_twice(self):
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = _member(Role.MEMBER)
        group = SimpleNamespace(id=1, member_count=1, max_members=3)

        with pytest.raises(AppError) as exc_info:
            group_service._add_membership(group, 1, Role.MEMBER, session)

        assert exc_info.value.code == ErrorCode.ALREADY_MEMBER

    @patch(f"{SERVICES}.group_service.get_group_or_404")
    @patch(f"{SERVICES}.group_service.require_member", return_value=_member(Role.MEMBER))
    def test_member_cannot_add_members(self, mock_member, mock_group):
        with pytest.raises(AppError) as exc_info:
            group_service.add_member(1, 1, 5, MagicMock())

        assert exc_info.value.code == ErrorCode.FORBIDDEN

    @patch(f"{SERVICES}.group_service.get_group_or_404")
    @patch(f"{SERVICES}.group_service.require_member", return_value=_member(Role.MODERATOR))
    def test_moderator_cannot_add_an_admin(self, mock_member, mock_group):
        with pytest.raises(AppError) as exc_info:
            group_service.add_member(1, 1, 5, MagicMock(), role=Role.ADMIN)

        assert exc_info.value.http_status == 403

    @patch(f"{SERVICES}.group_service.get_group_or_404")
    @patch(f"{SERVICES}.group_service.require_member", return_value=_member(Role.MODERATOR))
    @patch(f"{SERVICES}.group_service.require_target_member", return_value=_member(Role.ADMIN, 5))
    def test_moderator_cannot_remove_an_admin(self, mock_target, mock_member, mock_group):
        session = MagicMock()

        with pytest.raises(AppError) as exc_info:
            group_service.remove_member(1, 1, 5, session)

        assert exc_info.value.code == ErrorCode.FORBIDDEN
        session.delete.assert_not_called()


# ═══════════════════════════════════════════════════════════════════════════
# meal_service
# ═══════════════════════════════════════════════════════════════════════════

class TestMealRules:

    def _period(self, end=None):
        return SimpleNamespace(name="March", start_date=date(2026, 3, 1), end_date=end)

    def test_date_before_period_start_is_rejected(self):
        with pytest.raises(AppError) as exc_info:
            meal_service._require_date_in_period(date(2026, 2, 28), self._period())

        assert exc_info.value.code == ErrorCode.MEAL_DATE_OUTSIDE_PERIOD
        assert exc_info.value.http_status == 422

    def test_date_after_period_end_is_rejected(self):
        with pytest.raises(AppError):
            meal_service._require_date_in_period(date(2026, 4, 1), self._period(date(2026, 3, 31)))

    def test_open_period_accepts_any_later_date(self):
        meal_service._require_date_in_period(date(2026, 9, 1), self._period())

    def test_guest_limit_boundary(self):
        meal_service._check_guest_limit(existing=8, requested=2, limit=10)
        with pytest.raises(AppError) as exc_info:
            meal_service._check_guest_limit(existing=8, requested=3, limit=10)
        assert exc_info.value.code == ErrorCode.GUEST_MEAL_LIMIT_EXCEEDED

    @patch(f"{SERVICES}.meal_service.require_member", return_value=_member(Role.MEMBER))
    def test_member_cannot_log_meals_for_others(self, mock_member):
        with pytest.raises(AppError) as exc_info:
            meal_service._resolve_target_user(1, 1, 2, MagicMock())

        assert exc_info.value.code == ErrorCode.FORBIDDEN

    @patch(f"{SERVICES}.meal_service.require_target_member")
    @patch(f"{SERVICES}.meal_service.require_member", return_value=_member(Role.MEAL_MANAGER))
    def test_meal_manager_logs_meals_for_others(self, mock_member, mock_target):
        assert meal_service._resolve_target_user(1, 1, 2, MagicMock()) == 2
        mock_target.assert_called_once()


# ═══════════════════════════════════════════════════════════════════════════
# transaction_service
# ═══════════════════════════════════════════════════════════════════════════

class TestTransactionRules:

    @patch(f"{SERVICES}.transaction_service.get_group_or_404")
    @patch(f"{SERVICES}.transaction_service.require_member", return_value=_member(Role.MEMBER))
    def test_member_cannot_create_a_charge(self, mock_member, mock_group):
        with pytest.raises(AppError) as exc_info:
            transaction_service.create_transaction(
                1, 1, {"target_user_id": 2, "amount": Decimal("10.00"), "type": "charge"}, MagicMock(),
            )

        assert exc_info.value.code == ErrorCode.TRANSACTION_TYPE_NOT_ALLOWED
        assert exc_info.value.http_status == 422

    @patch(f"{SERVICES}.transaction_service.get_group_or_404")
    @patch(f"{SERVICES}.transaction_service.require_member", return_value=_member(Role.MEMBER))
    @patch(f"{SERVICES}.transaction_service.require_target_member", return_value=_member(Role.MEMBER, 2))
    def test_member_payment_must_target_privileged_member(self, mock_target, mock_member, mock_group):
        session = MagicMock()

        with pytest.raises(AppError) as exc_info:
            transaction_service.create_transaction(
                1, 1, {"target_user_id": 2, "amount": Decimal("10.00"), "type": "payment"}, session,
            )

        assert exc_info.value.code == ErrorCode.PAYMENT_TARGET_NOT_PRIVILEGED
        session.add.assert_not_called()

    @patch(f"{SERVICES}.transaction_service.get_group_or_404")
    @patch(f"{SERVICES}.transaction_service.require_member", return_value=_member(Role.MEMBER))
    def test_member_cannot_edit_transactions(self, mock_member, mock_group):
        with pytest.raises(AppError) as exc_info:
            transaction_service.update_transaction(1, 3, 1, {"amount": Decimal("1.00")}, MagicMock())

        assert exc_info.value.code == ErrorCode.FORBIDDEN

    @patch(f"{SERVICES}.transaction_service.get_group_or_404")
    @patch(f"{SERVICES}.transaction_service.require_member", return_value=_member(Role.ACCOUNTANT))
    def test_accountant_cannot_delete_transactions(self, mock_member, mock_group):
        with pytest.raises(AppError) as exc_info:
            transaction_service.delete_transaction(1, 3, 1, MagicMock())

        assert exc_info.value.code == ErrorCode.FORBIDDEN


# ═══════════════════════════════════════════════════════════════════════════
# balance_service
# ═══════════════════════════════════════════════════════════════════════════

def test_calculate_balance_without_period_is_zero():
    assert balance_service.calculate_balance(1, 1, None, MagicMock()) == Decimal("0.00")


@patch(f"{SERVICES}.balance_service.get_group_or_404")
@patch(f"{SERVICES}.balance_service.require_member", return_value=_member(Role.MEMBER))
def test_member_cannot_read_another_members_balance(mock_member, mock_group):
    with pytest.raises(AppError) as exc_info:
        balance_service.get_user_balance(1, 1, MagicMock(), target_user_id=2)

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    assert exc_info.value.http_status == 403
