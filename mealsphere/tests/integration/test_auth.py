"""
tests/integration/test_auth.py — Integration tests for the auth endpoints.

Endpoints covered:
  POST /auth/register  → 201
  POST /auth/login     → 200
  POST /auth/refresh   → 200
  POST /auth/logout    → 200
  GET  /auth/me        → 200
  PATCH /auth/me       → 200

401 (who are you?) and 403 (you may not) are never conflated.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from mealsphere.app.extensions import db
from mealsphere.app.models.refresh_token import RefreshToken

from .conftest import auth_headers, login, register


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class TestRegister:

    def test_register_returns_user_and_tokens(self, client):
        data = register(client, "Alice")
        assert data["user"]["name"] == "Alice"
        assert data["user"]["email"] == "alice@test.com"
        assert "password" not in data["user"]
        assert data["access_token"]
        assert data["refresh_token"]

    def test_email_is_stored_lower_cased(self, client):
        data = register(client, "Alice", email="Alice@Example.COM")
        assert data["user"]["email"] == "alice@example.com"

    def test_duplicate_email_is_case_insensitive(self, client):
        register(client, "Alice", email="alice@example.com")
        resp = client.post(
            "/api/v1/auth/register",
            json={"name": "Other", "email": "ALICE@example.com", "password": "Password1"},
        )
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "DUPLICATE_EMAIL"

    def test_missing_field_is_400(self, client):
        resp = client.post("/api/v1/auth/register", json={"name": "Alice", "password": "Password1"})
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "MISSING_FIELD"
        assert error["field"] == "email"

    def test_weak_password_is_400(self, client):
        resp = client.post(
            "/api/v1/auth/register",
            json={"name": "Alice", "email": "alice@test.com", "password": "password"},
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "password"


class TestLogin:

    def test_login_happy_path(self, client):
        register(client, "Alice")
        data = login(client, "alice@test.com")
        assert data["user"]["name"] == "Alice"
        assert data["access_token"]

    def test_login_ignores_email_case(self, client):
        register(client, "Alice")
        assert login(client, "ALICE@test.com")["user"]["email"] == "alice@test.com"

    def test_wrong_password_is_401(self, client):
        register(client, "Alice")
        resp = client.post(
            "/api/v1/auth/login",
            json={"email": "alice@test.com", "password": "Wrong1234"},
        )
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "INVALID_CREDENTIALS"

    def test_unknown_email_gets_the_same_error(self, client):
        resp = client.post(
            "/api/v1/auth/login",
            json={"email": "nobody@test.com", "password": "Password1"},
        )
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "INVALID_CREDENTIALS"


class TestTokens:

    def test_me_returns_current_user(self, client):
        alice = register(client, "Alice")
        resp = client.get("/api/v1/auth/me", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["id"] == alice["user"]["id"]

    def test_missing_token_is_401(self, client):
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_MISSING"

    def test_garbage_token_is_401(self, client):
        resp = client.get("/api/v1/auth/me", headers=auth_headers("not.a.jwt"))
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"

    def test_wrong_scheme_is_401(self, client):
        alice = register(client, "Alice")
        resp = client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Token {alice['access_token']}"},
        )
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"

    def test_refresh_issues_a_new_access_token(self, client):
        alice = register(client, "Alice")
        resp = client.post("/api/v1/auth/refresh", json={"refresh_token": alice["refresh_token"]})
        assert resp.status_code == 200
        token = resp.get_json()["data"]["access_token"]
        assert token != alice["access_token"]
        assert client.get("/api/v1/auth/me", headers=auth_headers(token)).status_code == 200

    def test_logout_revokes_refresh_token(self, client):
        alice = register(client, "Alice")
        resp = client.post(
            "/api/v1/auth/logout",
            json={"refresh_token": alice["refresh_token"]},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 200

        resp = client.post("/api/v1/auth/refresh", json={"refresh_token": alice["refresh_token"]})
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "REFRESH_TOKEN_INVALID"

    def test_login_prunes_expired_refresh_tokens(self, app, client):
        register(client, "Alice")
        with app.app_context():
            record = db.session.execute(select(RefreshToken)).scalar_one()
            record.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
            db.session.commit()

        login(client, "alice@test.com")

        with app.app_context():
            tokens = db.session.execute(select(RefreshToken)).scalars().all()
            assert len(tokens) == 1
            assert _aware(tokens[0].expires_at) > datetime.now(timezone.utc)

    def test_refresh_stamps_last_used_at(self, app, client):
        alice = register(client, "Alice")
        client.post("/api/v1/auth/refresh", json={"refresh_token": alice["refresh_token"]})

        with app.app_context():
            record = db.session.execute(select(RefreshToken)).scalar_one()
            assert record.last_used_at is not None


class TestProfile:

    def test_register_accepts_an_avatar(self, client):
        resp = client.post(
            "/api/v1/auth/register",
            json={
                "name": "Alice",
                "email": "alice@test.com",
                "password": "Password1",
                "image": "https://cdn.example.com/alice.png",
            },
        )
        assert resp.status_code == 201
        assert resp.get_json()["data"]["user"]["image"] == "https://cdn.example.com/alice.png"

    def test_update_name(self, client):
        alice = register(client, "Alice")
        resp = client.patch(
            "/api/v1/auth/me",
            json={"name": "  Alicia "},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["name"] == "Alicia"
        assert data["image"] is None

    def test_set_then_clear_image(self, client):
        alice = register(client, "Alice")
        headers = auth_headers(alice["access_token"])

        client.patch("/api/v1/auth/me", json={"image": "https://cdn.example.com/a.png"}, headers=headers)
        assert client.get("/api/v1/auth/me", headers=headers).get_json()["data"]["image"] == \
            "https://cdn.example.com/a.png"

        resp = client.patch("/api/v1/auth/me", json={"image": None}, headers=headers)
        assert resp.get_json()["data"]["image"] is None

    def test_empty_update_is_400(self, client):
        alice = register(client, "Alice")
        resp = client.patch("/api/v1/auth/me", json={}, headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_FIELD"

    def test_update_requires_a_token(self, client):
        assert client.patch("/api/v1/auth/me", json={"name": "X"}).status_code == 401
