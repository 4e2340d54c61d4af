"""
Integration fixtures: one app per run, emptied tables around every test.

The app comes from create_app("testing"), i.e. in-memory SQLite unless
TEST_DATABASE_URL points somewhere else. Tables are created once; after each
test every row is deleted (children first) and the calculation cache is
emptied.

The helpers below are plain functions rather than fixtures so a test can
call them as often and with whatever arguments it needs:

    alice = register(client, "Alice")
    group = make_group(client, alice["access_token"])
    start_period(client, alice["access_token"], group["id"])
"""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import text

from mealsphere.app import create_app
from mealsphere.app.extensions import db as _db, get_cache

# Children before parents, so a PostgreSQL run does not trip the FKs.
_TABLES_IN_DELETE_ORDER = (
    "transaction_history",
    "auto_meal_settings",
    "meal_settings",
    "payments",
    "account_transactions",
    "shopping_items",
    "extra_expenses",
    "guest_meals",
    "meals",
    "periods",
    "memberships",
    "refresh_tokens",
    "groups",
    "users",
)


@pytest.fixture(scope="session")
def app():
    test_app = create_app("testing")
    with test_app.app_context():
        _db.create_all()

    yield test_app

    # Requests push their own app context; holding one open here would
    # make them share it (and g, and the session).
    with test_app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def clean_tables(app):
    yield

    with app.app_context():
        for table in _TABLES_IN_DELETE_ORDER:
            _db.session.execute(text(f"DELETE FROM {table}"))
        _db.session.commit()

        cache = get_cache()
        if cache is not None:
            cache.clear()


@pytest.fixture
def client(app):
    return app.test_client()


# ── Helpers ────────────────────────────────────────────────────────────────

def register(
    client,
    name: str = "alice",
    email: str | None = None,
    password: str = "Password1",
) -> dict:
    """Response data: {"user", "access_token", "refresh_token"}."""
    if email is None:
        email = f"{name.lower()}@test.com"
    resp = client.post(
        "/api/v1/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def login(client, email: str, password: str = "Password1") -> dict:
    resp = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def make_group(client, token: str, name: str = "Flat 4B", **extra) -> dict:
    """The token owner becomes the group admin."""
    resp = client.post(
        "/api/v1/groups/",
        json={"name": name, **extra},
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def add_member(client, token: str, group_id: int, user_id: int, role: str = "member"):
    """Adds a user to a group (admin or moderator token). Returns the HTTP response."""
    return client.post(
        f"/api/v1/groups/{group_id}/members",
        json={"user_id": user_id, "role": role},
        headers=auth_headers(token),
    )


def set_role(client, token: str, group_id: int, user_id: int, role: str):
    return client.patch(
        f"/api/v1/groups/{group_id}/members/{user_id}",
        json={"role": role},
        headers=auth_headers(token),
    )


def start_period(
    client,
    token: str,
    group_id: int,
    name: str = "March",
    start_date: str | None = None,
    **extra,
) -> dict:
    """Starts a period (default: beginning today) and returns the period dict."""
    payload = {"name": name, **extra}
    payload["start_date"] = start_date or date.today().isoformat()
    resp = client.post(
        f"/api/v1/groups/{group_id}/periods",
        json=payload,
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, f"start_period failed: {resp.get_json()}"
    return resp.get_json()["data"]


def add_meal(
    client,
    token: str,
    group_id: int,
    meal_date: str | None = None,
    meal_type: str = "lunch",
    user_id: int | None = None,
):
    payload = {"date": meal_date or date.today().isoformat(), "meal_type": meal_type}
    if user_id is not None:
        payload["user_id"] = user_id
    return client.post(
        f"/api/v1/groups/{group_id}/meals",
        json=payload,
        headers=auth_headers(token),
    )


def make_transaction(
    client,
    token: str,
    group_id: int,
    target_user_id: int,
    amount: str,
    txn_type: str = "payment",
    description: str | None = None,
):
    payload = {"target_user_id": target_user_id, "amount": amount, "type": txn_type}
    if description is not None:
        payload["description"] = description
    return client.post(
        f"/api/v1/groups/{group_id}/transactions",
        json=payload,
        headers=auth_headers(token),
    )


def make_expense(client, token: str, group_id: int, amount: str, description: str = "Groceries"):
    return client.post(
        f"/api/v1/groups/{group_id}/expenses",
        json={"description": description, "amount": amount},
        headers=auth_headers(token),
    )
