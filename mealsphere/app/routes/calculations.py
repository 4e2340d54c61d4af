"""
routes/calculations.py — Meal rate, balance and settlement read endpoints.

Layer rules:
  - Parse query params, call ONE service, return envelope.
  - No commits: these endpoints never write.

Every endpoint defaults to the group's active period; ?period_id= selects
another one. With no period at all the figures are zero.

Endpoints (url_prefix=/api/v1/groups):
  GET /groups/:id/meal-rate          → 200  ?period_id=
  GET /groups/:id/balance            → 200  ?user_id=&period_id=
  GET /groups/:id/settlement         → 200  ?period_id=
  GET /groups/:id/balance-summary    → 200  ?period_id=
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from mealsphere.app.extensions import db, get_cache
from mealsphere.app.middleware.auth_middleware import require_auth
from mealsphere.app.services import balance_service, rate_service, settlement_service

calculations_bp = Blueprint("calculations", __name__)


def _include_shopping() -> bool:
    return bool(current_app.config.get("MEAL_RATE_INCLUDES_SHOPPING", False))


@calculations_bp.route("/<int:group_id>/meal-rate", methods=["GET"])
@require_auth
def meal_rate(group_id: int):
    result = rate_service.get_meal_rate(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
        period_id=request.args.get("period_id", type=int),
        include_shopping=_include_shopping(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@calculations_bp.route("/<int:group_id>/balance", methods=["GET"])
@require_auth
def user_balance(group_id: int):
    """
    GET /groups/:id/balance

    Without ?user_id= the caller's own balance. Other members' balances
    need the admin or accountant role (403 otherwise).
    """
    result = balance_service.get_user_balance(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
        target_user_id=request.args.get("user_id", type=int),
        period_id=request.args.get("period_id", type=int),
        include_shopping=_include_shopping(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@calculations_bp.route("/<int:group_id>/settlement", methods=["GET"])
@require_auth
def settlement(group_id: int):
    result = settlement_service.get_settlement_summary(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
        period_id=request.args.get("period_id", type=int),
        include_shopping=_include_shopping(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@calculations_bp.route("/<int:group_id>/balance-summary", methods=["GET"])
@require_auth
def balance_summary(group_id: int):
    result = settlement_service.get_group_balance_summary(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
        period_id=request.args.get("period_id", type=int),
        include_shopping=_include_shopping(),
    )
    return jsonify({"data": result, "warnings": []}), 200
