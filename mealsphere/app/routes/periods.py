"""
routes/periods.py — Period lifecycle route handlers.

Endpoints (url_prefix=/api/v1/groups):
  GET    /groups/:id/periods                    → 200  list (?include_archived=false)
  POST   /groups/:id/periods                    → 201  start a period
  GET    /groups/:id/periods/current            → 200  active period or null
  POST   /groups/:id/periods/current/end        → 200  end the active period
  POST   /groups/:id/periods/ensure-monthly     → 200  monthly rollover
  GET    /groups/:id/periods/:pid               → 200
  GET    /groups/:id/periods/:pid/summary       → 200  totals
  POST   /groups/:id/periods/:pid/end           → 200
  POST   /groups/:id/periods/:pid/lock          → 200
  POST   /groups/:id/periods/:pid/unlock        → 200  {"status": "active"|"ended"}
  POST   /groups/:id/periods/:pid/archive       → 200
  POST   /groups/:id/periods/:pid/restart       → 201  {"name"?, "with_data"?}
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from mealsphere.app.extensions import db, get_cache
from mealsphere.app.middleware.auth_middleware import require_auth
from mealsphere.app.schemas.period_schema import (
    CreatePeriodSchema,
    EndPeriodSchema,
    RestartPeriodSchema,
    UnlockPeriodSchema,
)
from mealsphere.app.schemas.serializers import period_serializer, periods_serializer
from mealsphere.app.services import period_service

periods_bp = Blueprint("periods", __name__)


def _include_shopping() -> bool:
    return bool(current_app.config.get("MEAL_RATE_INCLUDES_SHOPPING", False))


def _dump_or_none(period):
    return period_serializer.dump(period) if period is not None else None


@periods_bp.route("/<int:group_id>/periods", methods=["GET"])
@require_auth
def list_periods(group_id: int):
    include_archived = request.args.get("include_archived", "true").lower() != "false"
    periods = period_service.list_periods(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        include_archived=include_archived,
    )
    return jsonify({"data": periods_serializer.dump(periods), "warnings": []}), 200


@periods_bp.route("/<int:group_id>/periods", methods=["POST"])
@require_auth
def create_period(group_id: int):
    data = CreatePeriodSchema().load(request.get_json(force=True) or {})
    period = period_service.create_period(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": period_serializer.dump(period), "warnings": []}), 201


@periods_bp.route("/<int:group_id>/periods/current", methods=["GET"])
@require_auth
def current_period(group_id: int):
    period = period_service.get_active_period(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": _dump_or_none(period), "warnings": []}), 200


@periods_bp.route("/<int:group_id>/periods/current/end", methods=["POST"])
@require_auth
def end_current_period(group_id: int):
    data = EndPeriodSchema().load(request.get_json(silent=True) or {})
    period = period_service.end_period(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
        end_date=data.get("end_date"),
        include_shopping=_include_shopping(),
    )
    db.session.commit()
    return jsonify({"data": period_serializer.dump(period), "warnings": []}), 200


@periods_bp.route("/<int:group_id>/periods/ensure-monthly", methods=["POST"])
@require_auth
def ensure_monthly(group_id: int):
    """POST /groups/:id/periods/ensure-monthly — no-op for custom-mode groups."""
    period = period_service.ensure_month_period(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
        include_shopping=_include_shopping(),
    )
    db.session.commit()
    return jsonify({"data": _dump_or_none(period), "warnings": []}), 200


@periods_bp.route("/<int:group_id>/periods/<int:period_id>", methods=["GET"])
@require_auth
def get_period(group_id: int, period_id: int):
    period = period_service.get_period(
        group_id=group_id,
        period_id=period_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": period_serializer.dump(period), "warnings": []}), 200


@periods_bp.route("/<int:group_id>/periods/<int:period_id>/summary", methods=["GET"])
@require_auth
def period_summary(group_id: int, period_id: int):
    result = period_service.get_period_summary(
        group_id=group_id,
        period_id=period_id,
        caller_id=g.user_id,
        session=db.session,
        include_shopping=_include_shopping(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@periods_bp.route("/<int:group_id>/periods/<int:period_id>/end", methods=["POST"])
@require_auth
def end_period(group_id: int, period_id: int):
    data = EndPeriodSchema().load(request.get_json(silent=True) or {})
    period = period_service.end_period(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
        period_id=period_id,
        end_date=data.get("end_date"),
        include_shopping=_include_shopping(),
    )
    db.session.commit()
    return jsonify({"data": period_serializer.dump(period), "warnings": []}), 200


@periods_bp.route("/<int:group_id>/periods/<int:period_id>/lock", methods=["POST"])
@require_auth
def lock_period(group_id: int, period_id: int):
    period = period_service.lock_period(
        group_id=group_id,
        period_id=period_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": period_serializer.dump(period), "warnings": []}), 200


@periods_bp.route("/<int:group_id>/periods/<int:period_id>/unlock", methods=["POST"])
@require_auth
def unlock_period(group_id: int, period_id: int):
    data = UnlockPeriodSchema().load(request.get_json(silent=True) or {})
    period = period_service.unlock_period(
        group_id=group_id,
        period_id=period_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
        status=data["status"],
    )
    db.session.commit()
    return jsonify({"data": period_serializer.dump(period), "warnings": []}), 200


@periods_bp.route("/<int:group_id>/periods/<int:period_id>/archive", methods=["POST"])
@require_auth
def archive_period(group_id: int, period_id: int):
    period = period_service.archive_period(
        group_id=group_id,
        period_id=period_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
        include_shopping=_include_shopping(),
    )
    db.session.commit()
    return jsonify({"data": period_serializer.dump(period), "warnings": []}), 200


@periods_bp.route("/<int:group_id>/periods/<int:period_id>/restart", methods=["POST"])
@require_auth
def restart_period(group_id: int, period_id: int):
    data = RestartPeriodSchema().load(request.get_json(silent=True) or {})
    period = period_service.restart_period(
        group_id=group_id,
        caller_id=g.user_id,
        period_id=period_id,
        session=db.session,
        cache=get_cache(),
        name=data.get("name"),
        with_data=data["with_data"],
    )
    db.session.commit()
    return jsonify({"data": period_serializer.dump(period), "warnings": []}), 201
