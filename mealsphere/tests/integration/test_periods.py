"""
tests/integration/test_periods.py — Integration tests for the period lifecycle.

Endpoints covered:
  POST /groups/:id/periods                  → 201 / 403 / 409
  GET  /groups/:id/periods[/current|/:pid]  → 200
  POST /groups/:id/periods/current/end      → 200
  POST /groups/:id/periods/:pid/lock        → 200
  POST /groups/:id/periods/:pid/unlock      → 200 / 409
  POST /groups/:id/periods/:pid/archive     → 200
  POST /groups/:id/periods/:pid/restart     → 201
  PATCH /groups/:id/period-mode             → 200 / 403
  POST /groups/:id/periods/ensure-monthly   → 200

Invariants verified:
  - at most one active period per group; a rejected create leaves the
    existing period untouched
  - a locked or archived period rejects ledger writes
  - restart naming and carry-forward of the closing balance
  - the database itself rejects a second active row or a reused name,
    and the service reports each as its own conflict
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from mealsphere.app.errors import AppError, ErrorCode
from mealsphere.app.extensions import db
from mealsphere.app.models.enums import PeriodStatus
from mealsphere.app.models.period import Period
from mealsphere.app.services import period_service

from .conftest import (
    add_meal,
    add_member,
    auth_headers,
    make_expense,
    make_group,
    make_transaction,
    register,
    start_period,
)


def _setup(client):
    alice = register(client, "Alice")
    bob = register(client, "Bob")
    group = make_group(client, alice["access_token"])
    add_member(client, alice["access_token"], group["id"], bob["user"]["id"])
    return alice, bob, group


def _post(client, token, url, payload=None):
    return client.post(url, json=payload or {}, headers=auth_headers(token))


def _periods_url(group_id: int) -> str:
    return f"/api/v1/groups/{group_id}/periods"


# ═══════════════════════════════════════════════════════════════════════════
# Create
# ═══════════════════════════════════════════════════════════════════════════

class TestCreatePeriod:

    def test_create_returns_active_period(self, client):
        alice, bob, group = _setup(client)
        period = start_period(client, alice["access_token"], group["id"], name="March")

        assert period["name"] == "March"
        assert period["status"] == "active"
        assert period["is_locked"] is False
        assert period["opening_balance"] == "0.00"
        assert period["start_date"] == date.today().isoformat()

    def test_second_active_period_is_409_and_first_is_unchanged(self, client):
        alice, bob, group = _setup(client)
        first = start_period(client, alice["access_token"], group["id"], name="March")

        resp = _post(client, alice["access_token"], _periods_url(group["id"]), {"name": "April"})
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "ACTIVE_PERIOD_EXISTS"

        resp = client.get(
            f"{_periods_url(group['id'])}/current",
            headers=auth_headers(alice["access_token"]),
        )
        current = resp.get_json()["data"]
        assert current["id"] == first["id"]
        assert current["name"] == "March"

        resp = client.get(_periods_url(group["id"]), headers=auth_headers(alice["access_token"]))
        assert len(resp.get_json()["data"]) == 1

    def test_member_cannot_start_period(self, client):
        alice, bob, group = _setup(client)
        resp = _post(client, bob["access_token"], _periods_url(group["id"]), {"name": "March"})
        assert resp.status_code == 403

    def test_end_before_start_is_400(self, client):
        alice, bob, group = _setup(client)
        resp = _post(client, alice["access_token"], _periods_url(group["id"]), {
            "name": "March",
            "start_date": "2026-03-10",
            "end_date": "2026-03-01",
        })
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "INVALID_DATE_RANGE"
        assert error["field"] == "end_date"

    def test_end_date_in_the_past_is_400(self, client):
        alice, bob, group = _setup(client)
        today = date.today()
        resp = _post(client, alice["access_token"], _periods_url(group["id"]), {
            "name": "Backdated",
            "start_date": (today - timedelta(days=20)).isoformat(),
            "end_date": (today - timedelta(days=2)).isoformat(),
        })
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "INVALID_DATE_RANGE"
        assert error["field"] == "end_date"

        resp = client.get(_periods_url(group["id"]), headers=auth_headers(alice["access_token"]))
        assert resp.get_json()["data"] == []

    def test_overlapping_range_is_409_naming_the_period(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        today = date.today()
        start_period(client, token, group["id"], name="Week one",
                     end_date=(today + timedelta(days=7)).isoformat())
        _post(client, token, f"{_periods_url(group['id'])}/current/end")  # closes [today, today]

        resp = _post(client, token, _periods_url(group["id"]), {
            "name": "Week two",
            "start_date": today.isoformat(),
            "end_date": (today + timedelta(days=7)).isoformat(),
        })
        assert resp.status_code == 409
        error = resp.get_json()["error"]
        assert error["code"] == "PERIOD_OVERLAP"
        assert "Week one" in error["message"]

    def test_range_after_the_last_period_is_accepted(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        today = date.today()
        start_period(client, token, group["id"], name="Week one")
        _post(client, token, f"{_periods_url(group['id'])}/current/end")

        period = start_period(
            client, token, group["id"], name="Week two",
            start_date=(today + timedelta(days=1)).isoformat(),
            end_date=(today + timedelta(days=7)).isoformat(),
        )
        assert period["end_date"] == (today + timedelta(days=7)).isoformat()

    def test_current_is_null_without_period(self, client):
        alice, bob, group = _setup(client)
        resp = client.get(
            f"{_periods_url(group['id'])}/current",
            headers=auth_headers(bob["access_token"]),
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"] is None

    def test_period_of_other_group_is_404(self, client):
        alice, bob, group = _setup(client)
        other = make_group(client, alice["access_token"], name="Other")
        period = start_period(client, alice["access_token"], other["id"])

        resp = client.get(
            f"{_periods_url(group['id'])}/{period['id']}",
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "PERIOD_NOT_FOUND"


# ═══════════════════════════════════════════════════════════════════════════
# End / lock / unlock / archive
# ═══════════════════════════════════════════════════════════════════════════

class TestEndPeriod:

    def test_end_computes_closing_balance(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        start_period(client, token, group["id"], opening_balance="100.00")
        make_expense(client, token, group["id"], "30.00")
        make_transaction(client, token, group["id"], bob["user"]["id"], "50.00")

        resp = _post(client, token, f"{_periods_url(group['id'])}/current/end")
        assert resp.status_code == 200
        period = resp.get_json()["data"]
        assert period["status"] == "ended"
        assert period["end_date"] == date.today().isoformat()
        assert period["closing_balance"] == "120.00"

    def test_end_without_active_period_is_409(self, client):
        alice, bob, group = _setup(client)
        resp = _post(client, alice["access_token"], f"{_periods_url(group['id'])}/current/end")
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "NO_ACTIVE_PERIOD"

    def test_ended_period_cannot_be_ended_again(self, client):
        alice, bob, group = _setup(client)
        period = start_period(client, alice["access_token"], group["id"])
        url = f"{_periods_url(group['id'])}/{period['id']}/end"
        assert _post(client, alice["access_token"], url).status_code == 200

        resp = _post(client, alice["access_token"], url)
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "PERIOD_NOT_ACTIVE"

    def test_new_period_after_end(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        start_period(client, token, group["id"], name="March")
        _post(client, token, f"{_periods_url(group['id'])}/current/end")

        april = start_period(client, token, group["id"], name="April")
        assert april["status"] == "active"


class TestLockUnlock:

    def test_locked_period_rejects_meals(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        period = start_period(client, token, group["id"])

        resp = _post(client, token, f"{_periods_url(group['id'])}/{period['id']}/lock")
        assert resp.status_code == 200
        assert resp.get_json()["data"]["is_locked"] is True

        resp = add_meal(client, token, group["id"])
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "PERIOD_LOCKED"

        resp = client.get(f"/api/v1/groups/{group['id']}/meals", headers=auth_headers(token))
        assert resp.get_json()["data"] == []

    def test_lock_twice_is_409(self, client):
        alice, bob, group = _setup(client)
        period = start_period(client, alice["access_token"], group["id"])
        url = f"{_periods_url(group['id'])}/{period['id']}/lock"
        _post(client, alice["access_token"], url)
        assert _post(client, alice["access_token"], url).status_code == 409

    def test_unlock_back_to_active_accepts_writes(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        period = start_period(client, token, group["id"])
        base = f"{_periods_url(group['id'])}/{period['id']}"
        _post(client, token, f"{base}/lock")

        resp = _post(client, token, f"{base}/unlock", {"status": "active"})
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["is_locked"] is False
        assert data["status"] == "active"

        assert add_meal(client, token, group["id"]).status_code == 201

    def test_unlock_defaults_to_ended(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        period = start_period(client, token, group["id"])
        base = f"{_periods_url(group['id'])}/{period['id']}"
        _post(client, token, f"{base}/lock")

        resp = _post(client, token, f"{base}/unlock")
        assert resp.get_json()["data"]["status"] == "ended"

    def test_unlock_unlocked_is_409(self, client):
        alice, bob, group = _setup(client)
        period = start_period(client, alice["access_token"], group["id"])
        resp = _post(client, alice["access_token"], f"{_periods_url(group['id'])}/{period['id']}/unlock")
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "PERIOD_NOT_LOCKED"

    def test_reactivating_while_another_is_active_is_409(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        march = start_period(client, token, group["id"], name="March")
        base = f"{_periods_url(group['id'])}/{march['id']}"
        _post(client, token, f"{base}/end")
        _post(client, token, f"{base}/lock")
        start_period(client, token, group["id"], name="April")

        resp = _post(client, token, f"{base}/unlock", {"status": "active"})
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "ACTIVE_PERIOD_EXISTS"

    def test_member_cannot_lock(self, client):
        alice, bob, group = _setup(client)
        period = start_period(client, alice["access_token"], group["id"])
        resp = _post(client, bob["access_token"], f"{_periods_url(group['id'])}/{period['id']}/lock")
        assert resp.status_code == 403


class TestArchive:

    def test_archive_active_period_ends_it_first(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        period = start_period(client, token, group["id"])

        resp = _post(client, token, f"{_periods_url(group['id'])}/{period['id']}/archive")
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["status"] == "archived"
        assert data["end_date"] == date.today().isoformat()
        assert data["closing_balance"] == "0.00"

    def test_archived_period_is_read_only(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        period = start_period(client, token, group["id"])
        base = f"{_periods_url(group['id'])}/{period['id']}"
        _post(client, token, f"{base}/archive")

        resp = client.post(
            f"/api/v1/groups/{group['id']}/meals",
            json={"date": date.today().isoformat(), "meal_type": "lunch", "period_id": period["id"]},
            headers=auth_headers(token),
        )
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "PERIOD_ARCHIVED"

        assert _post(client, token, f"{base}/unlock").status_code == 409
        assert _post(client, token, f"{base}/archive").status_code == 409

    def test_list_can_hide_archived(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        march = start_period(client, token, group["id"], name="March")
        _post(client, token, f"{_periods_url(group['id'])}/{march['id']}/archive")
        start_period(client, token, group["id"], name="April")

        resp = client.get(
            f"{_periods_url(group['id'])}?include_archived=false",
            headers=auth_headers(token),
        )
        assert [p["name"] for p in resp.get_json()["data"]] == ["April"]

        resp = client.get(_periods_url(group["id"]), headers=auth_headers(token))
        assert len(resp.get_json()["data"]) == 2


# ═══════════════════════════════════════════════════════════════════════════
# Restart
# ═══════════════════════════════════════════════════════════════════════════

class TestRestart:

    def _ended_period(self, client, token, group_id, **extra):
        period = start_period(client, token, group_id, name="March", **extra)
        _post(client, token, f"{_periods_url(group_id)}/{period['id']}/end")
        return period

    def test_restart_names_and_counts(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        march = self._ended_period(client, token, group["id"])
        restart_url = f"{_periods_url(group['id'])}/{march['id']}/restart"

        resp = _post(client, token, restart_url)
        assert resp.status_code == 201
        first = resp.get_json()["data"]
        assert first["name"] == "March (Restarted)"
        assert first["status"] == "active"

        _post(client, token, f"{_periods_url(group['id'])}/{first['id']}/end")
        second = _post(client, token, restart_url).get_json()["data"]
        assert second["name"] == "March (Restarted 2)"

    def test_restart_with_explicit_name(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        march = self._ended_period(client, token, group["id"])

        resp = _post(client, token, f"{_periods_url(group['id'])}/{march['id']}/restart", {"name": "March again"})
        assert resp.get_json()["data"]["name"] == "March again"

    def test_restart_carries_closing_balance_forward(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        march = start_period(client, token, group["id"], name="March",
                             opening_balance="100.00", carry_forward=True)
        make_expense(client, token, group["id"], "30.00")
        make_transaction(client, token, group["id"], bob["user"]["id"], "50.00")
        _post(client, token, f"{_periods_url(group['id'])}/{march['id']}/end")

        resp = _post(client, token, f"{_periods_url(group['id'])}/{march['id']}/restart")
        data = resp.get_json()["data"]
        assert data["opening_balance"] == "120.00"
        assert data["carry_forward"] is True

    def test_new_period_carries_forward_when_flagged(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        march = start_period(client, token, group["id"], name="March",
                             opening_balance="40.00", carry_forward=True)
        _post(client, token, f"{_periods_url(group['id'])}/{march['id']}/end")

        april = start_period(client, token, group["id"], name="April")
        assert april["opening_balance"] == "40.00"

    def test_restart_with_data_moves_ledger_rows(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        march = start_period(client, token, group["id"], name="March")
        assert add_meal(client, token, group["id"]).status_code == 201
        _post(client, token, f"{_periods_url(group['id'])}/{march['id']}/end")

        resp = _post(client, token, f"{_periods_url(group['id'])}/{march['id']}/restart", {"with_data": True})
        assert resp.status_code == 201
        new_id = resp.get_json()["data"]["id"]

        meals = client.get(f"/api/v1/groups/{group['id']}/meals", headers=auth_headers(token)).get_json()["data"]
        assert len(meals) == 1
        assert meals[0]["period_id"] == new_id

        summary = client.get(
            f"{_periods_url(group['id'])}/{march['id']}/summary",
            headers=auth_headers(token),
        ).get_json()["data"]
        assert summary["total_meals"] == 0

    def test_restart_while_active_exists_is_409(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        march = self._ended_period(client, token, group["id"])
        start_period(client, token, group["id"], name="April")

        resp = _post(client, token, f"{_periods_url(group['id'])}/{march['id']}/restart")
        assert resp.status_code == 409


# ═══════════════════════════════════════════════════════════════════════════
# Monthly mode
# ═══════════════════════════════════════════════════════════════════════════

class TestMonthlyMode:

    def test_switching_to_monthly_starts_this_months_period(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        month_start = date.today().replace(day=1)

        resp = client.patch(
            f"/api/v1/groups/{group['id']}/period-mode",
            json={"period_mode": "monthly"},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["period_mode"] == "monthly"
        assert data["current_period_id"] is not None

        current = client.get(
            f"{_periods_url(group['id'])}/current",
            headers=auth_headers(token),
        ).get_json()["data"]
        assert current["id"] == data["current_period_id"]
        assert current["name"] == month_start.strftime("%B %Y")
        assert current["start_date"] == month_start.isoformat()

        again = _post(client, token, f"{_periods_url(group['id'])}/ensure-monthly").get_json()["data"]
        assert again["id"] == current["id"]

    def test_rollover_closes_last_months_period(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        month_start = date.today().replace(day=1)
        last_month_end = month_start - timedelta(days=1)
        old = start_period(
            client, token, group["id"], name="Old",
            start_date=last_month_end.replace(day=1).isoformat(),
        )

        resp = client.patch(
            f"/api/v1/groups/{group['id']}/period-mode",
            json={"period_mode": "monthly"},
            headers=auth_headers(token),
        )
        assert resp.get_json()["data"]["current_period_id"] != old["id"]

        old_now = client.get(
            f"{_periods_url(group['id'])}/{old['id']}",
            headers=auth_headers(token),
        ).get_json()["data"]
        assert old_now["status"] == "ended"
        assert old_now["end_date"] == last_month_end.isoformat()

    def test_monthly_again_after_ending_this_month_starts_nothing(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        mode_url = f"/api/v1/groups/{group['id']}/period-mode"
        client.patch(mode_url, json={"period_mode": "monthly"}, headers=auth_headers(token))
        _post(client, token, f"{_periods_url(group['id'])}/current/end")

        resp = client.patch(mode_url, json={"period_mode": "monthly"}, headers=auth_headers(token))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["current_period_id"] is None

        periods = client.get(_periods_url(group["id"]), headers=auth_headers(token)).get_json()["data"]
        assert [p["name"] for p in periods] == [date.today().strftime("%B %Y")]

    def test_rollover_period_does_not_inherit_carry_forward(self, client):
        alice, bob, group = _setup(client)
        token = alice["access_token"]
        last_month_start = (date.today().replace(day=1) - timedelta(days=1)).replace(day=1)
        start_period(client, token, group["id"], name="Old",
                     start_date=last_month_start.isoformat(), carry_forward=True)

        resp = client.patch(
            f"/api/v1/groups/{group['id']}/period-mode",
            json={"period_mode": "monthly"},
            headers=auth_headers(token),
        )
        new_id = resp.get_json()["data"]["current_period_id"]
        new = client.get(f"{_periods_url(group['id'])}/{new_id}", headers=auth_headers(token)).get_json()["data"]
        assert new["carry_forward"] is False

    def test_ensure_monthly_is_a_no_op_for_custom_groups(self, client):
        alice, bob, group = _setup(client)
        resp = _post(client, bob["access_token"], f"{_periods_url(group['id'])}/ensure-monthly")
        assert resp.status_code == 200
        assert resp.get_json()["data"] is None

    def test_only_admin_switches_mode(self, client):
        alice, bob, group = _setup(client)
        resp = client.patch(
            f"/api/v1/groups/{group['id']}/period-mode",
            json={"period_mode": "monthly"},
            headers=auth_headers(bob["access_token"]),
        )
        assert resp.status_code == 403


# ═══════════════════════════════════════════════════════════════════════════
# Database constraints behind the lifecycle
# ═══════════════════════════════════════════════════════════════════════════

def _active_row(group_id: int, name: str, user_id: int) -> Period:
    return Period(
        group_id=group_id,
        name=name,
        start_date=date.today(),
        status=PeriodStatus.ACTIVE,
        is_locked=False,
        opening_balance=Decimal("0.00"),
        carry_forward=False,
        created_by=user_id,
    )


class TestPeriodConstraints:

    def test_database_rejects_a_second_active_row(self, app, client):
        alice, bob, group = _setup(client)
        start_period(client, alice["access_token"], group["id"], name="March")

        with app.app_context():
            db.session.add(_active_row(group["id"], "Shadow", alice["user"]["id"]))
            with pytest.raises(IntegrityError):
                db.session.flush()
            db.session.rollback()

    def test_lost_insert_race_is_active_period_exists(self, app, client):
        alice, bob, group = _setup(client)
        first = start_period(client, alice["access_token"], group["id"], name="March")

        with app.app_context():
            with pytest.raises(AppError) as err:
                period_service._insert_active_period(
                    _active_row(group["id"], "Shadow", alice["user"]["id"]), db.session,
                )
        assert err.value.code == ErrorCode.ACTIVE_PERIOD_EXISTS
        assert err.value.http_status == 409

        current = client.get(
            f"{_periods_url(group['id'])}/current",
            headers=auth_headers(alice["access_token"]),
        ).get_json()["data"]
        assert current["id"] == first["id"]

    def test_reused_name_is_a_name_conflict(self, app, client):
        alice, bob, group = _setup(client)
        start_period(client, alice["access_token"], group["id"], name="March")
        _post(client, alice["access_token"], f"{_periods_url(group['id'])}/current/end")

        with app.app_context():
            with pytest.raises(AppError) as err:
                period_service._insert_active_period(
                    _active_row(group["id"], "March", alice["user"]["id"]), db.session,
                )
        assert err.value.code == ErrorCode.DUPLICATE_PERIOD_NAME
        assert err.value.http_status == 409
        assert "March" in err.value.message
