"""
routes/meals.py — Meal and guest-meal route handlers.

Endpoints (url_prefix=/api/v1/groups):
  GET    /groups/:id/meals                 → 200  ?period_id=&user_id=&start=&end=
  POST   /groups/:id/meals                 → 201
  DELETE /groups/:id/meals/:mid            → 200
  GET    /groups/:id/guest-meals           → 200  ?period_id=&user_id=
  POST   /groups/:id/guest-meals           → 201
  PATCH  /groups/:id/guest-meals/:gid      → 200  count only
  DELETE /groups/:id/guest-meals/:gid      → 200
  GET    /groups/:id/meal-settings         → 200
  PATCH  /groups/:id/meal-settings         → 200  admin, manager, meal_manager
  GET    /groups/:id/auto-meal-settings    → 200  the caller's own order
  PATCH  /groups/:id/auto-meal-settings    → 200
  POST   /groups/:id/meals/auto            → 200  books standing orders; body {date?}
"""

from __future__ import annotations

from datetime import date

from flask import Blueprint, current_app, g, jsonify, request

from mealsphere.app.errors import AppError, ErrorCode
from mealsphere.app.extensions import db, get_cache
from mealsphere.app.middleware.auth_middleware import require_auth
from mealsphere.app.schemas.meal_schema import (
    CreateGuestMealSchema,
    CreateMealSchema,
    TriggerAutoMealsSchema,
    UpdateAutoMealSettingsSchema,
    UpdateGuestMealSchema,
    UpdateMealSettingsSchema,
)
from mealsphere.app.schemas.serializers import (
    guest_meal_serializer,
    guest_meals_serializer,
    meal_serializer,
    meals_serializer,
)
from mealsphere.app.services import meal_service

meals_bp = Blueprint("meals", __name__)


def _query_date(name: str) -> date | None:
    raw = request.args.get(name)
    if raw is None:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise AppError(
            ErrorCode.INVALID_FIELD,
            f"'{raw}' is not a valid date. Use YYYY-MM-DD.",
            400,
            field=name,
        )


def _configured_guest_limit() -> int:
    return int(current_app.config.get("GUEST_MEAL_LIMIT", meal_service.DEFAULT_GUEST_MEAL_LIMIT))


def _guest_limit(group_id: int) -> int:
    return meal_service.guest_limit_for(group_id, db.session, _configured_guest_limit())


# ── Meals ──────────────────────────────────────────────────────────────────

@meals_bp.route("/<int:group_id>/meals", methods=["GET"])
@require_auth
def list_meals(group_id: int):
    meals = meal_service.list_meals(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        period_id=request.args.get("period_id", type=int),
        user_id=request.args.get("user_id", type=int),
        start=_query_date("start"),
        end=_query_date("end"),
    )
    return jsonify({"data": meals_serializer.dump(meals), "warnings": []}), 200


@meals_bp.route("/<int:group_id>/meals", methods=["POST"])
@require_auth
def add_meal(group_id: int):
    data = CreateMealSchema().load(request.get_json(force=True) or {})
    meal = meal_service.add_meal(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": meal_serializer.dump(meal), "warnings": []}), 201


@meals_bp.route("/<int:group_id>/meals/<int:meal_id>", methods=["DELETE"])
@require_auth
def remove_meal(group_id: int, meal_id: int):
    meal_service.remove_meal(
        group_id=group_id,
        meal_id=meal_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": {"deleted": True, "meal_id": meal_id}, "warnings": []}), 200


# ── Guest meals ────────────────────────────────────────────────────────────

@meals_bp.route("/<int:group_id>/guest-meals", methods=["GET"])
@require_auth
def list_guest_meals(group_id: int):
    guest_meals = meal_service.list_guest_meals(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        period_id=request.args.get("period_id", type=int),
        user_id=request.args.get("user_id", type=int),
    )
    return jsonify({"data": guest_meals_serializer.dump(guest_meals), "warnings": []}), 200


@meals_bp.route("/<int:group_id>/guest-meals", methods=["POST"])
@require_auth
def add_guest_meal(group_id: int):
    data = CreateGuestMealSchema().load(request.get_json(force=True) or {})
    guest_meal = meal_service.add_guest_meal(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        cache=get_cache(),
        guest_limit=_guest_limit(group_id),
    )
    db.session.commit()
    return jsonify({"data": guest_meal_serializer.dump(guest_meal), "warnings": []}), 201


@meals_bp.route("/<int:group_id>/guest-meals/<int:guest_meal_id>", methods=["PATCH"])
@require_auth
def update_guest_meal(group_id: int, guest_meal_id: int):
    data = UpdateGuestMealSchema().load(request.get_json(force=True) or {})
    guest_meal = meal_service.update_guest_meal(
        group_id=group_id,
        guest_meal_id=guest_meal_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        cache=get_cache(),
        guest_limit=_guest_limit(group_id),
    )
    db.session.commit()
    return jsonify({"data": guest_meal_serializer.dump(guest_meal), "warnings": []}), 200


@meals_bp.route("/<int:group_id>/guest-meals/<int:guest_meal_id>", methods=["DELETE"])
@require_auth
def delete_guest_meal(group_id: int, guest_meal_id: int):
    meal_service.delete_guest_meal(
        group_id=group_id,
        guest_meal_id=guest_meal_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": {"deleted": True, "guest_meal_id": guest_meal_id}, "warnings": []}), 200


# ── Settings and auto meals ────────────────────────────────────────────────

@meals_bp.route("/<int:group_id>/meal-settings", methods=["GET"])
@require_auth
def get_meal_settings(group_id: int):
    result = meal_service.get_meal_settings(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        default_guest_limit=_configured_guest_limit(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@meals_bp.route("/<int:group_id>/meal-settings", methods=["PATCH"])
@require_auth
def update_meal_settings(group_id: int):
    data = UpdateMealSettingsSchema().load(request.get_json(force=True) or {})
    result = meal_service.update_meal_settings(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        cache=get_cache(),
        default_guest_limit=_configured_guest_limit(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@meals_bp.route("/<int:group_id>/auto-meal-settings", methods=["GET"])
@require_auth
def get_auto_meal_settings(group_id: int):
    result = meal_service.get_auto_meal_settings(group_id, g.user_id, db.session)
    return jsonify({"data": result, "warnings": []}), 200


@meals_bp.route("/<int:group_id>/auto-meal-settings", methods=["PATCH"])
@require_auth
def update_auto_meal_settings(group_id: int):
    data = UpdateAutoMealSettingsSchema().load(request.get_json(force=True) or {})
    result = meal_service.update_auto_meal_settings(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@meals_bp.route("/<int:group_id>/meals/auto", methods=["POST"])
@require_auth
def trigger_auto_meals(group_id: int):
    data = TriggerAutoMealsSchema().load(request.get_json(silent=True) or {})
    result = meal_service.trigger_auto_meals(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
        target_date=data["date"],
        default_guest_limit=_configured_guest_limit(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
