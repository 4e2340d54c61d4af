"""
routes/auth.py — /api/v1/auth

  POST   /register  → 201  account + token pair
  POST   /login     → 200  token pair
  POST   /refresh   → 200  new access token (stamps the refresh token)
  POST   /logout    → 200  revokes the refresh token
  GET    /me        → 200  profile
  PATCH  /me        → 200  profile after the update

Only register/login/refresh are reachable without a Bearer token.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from mealsphere.app.extensions import db
from mealsphere.app.middleware.auth_middleware import require_auth
from mealsphere.app.schemas.auth_schema import (
    LoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
    UpdateProfileSchema,
)
from mealsphere.app.services import auth_service

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
def register():
    data = RegisterSchema().load(request.get_json(force=True) or {})
    result = auth_service.register_user(session=db.session, **data)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = LoginSchema().load(request.get_json(force=True) or {})
    result = auth_service.login_user(data["email"], data["password"], db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    data = RefreshTokenSchema().load(request.get_json(force=True) or {})
    result = auth_service.refresh_access_token(data["refresh_token"], db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    data = RefreshTokenSchema().load(request.get_json(force=True) or {})
    auth_service.logout_user(data["refresh_token"], db.session)
    db.session.commit()
    return jsonify({"data": {"message": "Logged out successfully."}, "warnings": []}), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    result = auth_service.get_current_user(g.user_id, db.session)
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/me", methods=["PATCH"])
@require_auth
def update_me():
    data = UpdateProfileSchema().load(request.get_json(force=True) or {})
    result = auth_service.update_profile(g.user_id, data, db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
