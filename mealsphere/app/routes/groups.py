"""
routes/groups.py — Group and membership route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries.

Endpoints (url_prefix=/api/v1/groups):
  POST   /groups                        → 201  create group (caller becomes admin)
  GET    /groups                        → 200  list caller's groups
  GET    /groups/:id                    → 200  group + members and roles
  DELETE /groups/:id                    → 200  delete group (admin)
  POST   /groups/:id/join               → 201  join (password for private groups)
  POST   /groups/:id/members            → 201  add member (admin/moderator)
  PATCH  /groups/:id/members/:uid       → 200  change role (admin)
  DELETE /groups/:id/members/:uid       → 200  remove member or leave
  PATCH  /groups/:id/period-mode        → 200  monthly / custom (admin)
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from mealsphere.app.extensions import db, get_cache
from mealsphere.app.middleware.auth_middleware import require_auth
from mealsphere.app.schemas.group_schema import (
    AddMemberSchema,
    CreateGroupSchema,
    JoinGroupSchema,
    PeriodModeSchema,
    UpdateMemberRoleSchema,
)
from mealsphere.app.services import group_service, period_service

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("/", methods=["POST"])
@require_auth
def create_group():
    data = CreateGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.create_group(
        creator_id=g.user_id,
        data=data,
        session=db.session,
        bcrypt_rounds=current_app.config.get("BCRYPT_LOG_ROUNDS", 12),
        default_max_members=current_app.config.get("DEFAULT_MAX_MEMBERS", 20),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/", methods=["GET"])
@require_auth
def list_groups():
    result = group_service.list_groups(user_id=g.user_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["GET"])
@require_auth
def get_group(group_id: int):
    result = group_service.get_group(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["DELETE"])
@require_auth
def delete_group(group_id: int):
    """DELETE /groups/:id — Removes the group with every period and ledger row."""
    group_service.delete_group(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": {"deleted": True, "group_id": group_id}, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/join", methods=["POST"])
@require_auth
def join_group(group_id: int):
    data = JoinGroupSchema().load(request.get_json(silent=True) or {})
    result = group_service.join_group(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        password=data.get("password"),
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/<int:group_id>/members", methods=["POST"])
@require_auth
def add_member(group_id: int):
    data = AddMemberSchema().load(request.get_json(force=True) or {})
    result = group_service.add_member(
        group_id=group_id,
        caller_id=g.user_id,
        target_user_id=data["user_id"],
        session=db.session,
        cache=get_cache(),
        role=data["role"],
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/<int:group_id>/members/<int:target_uid>", methods=["PATCH"])
@require_auth
def update_member_role(group_id: int, target_uid: int):
    data = UpdateMemberRoleSchema().load(request.get_json(force=True) or {})
    result = group_service.update_member_role(
        group_id=group_id,
        caller_id=g.user_id,
        target_user_id=target_uid,
        role=data["role"],
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/members/<int:target_uid>", methods=["DELETE"])
@require_auth
def remove_member(group_id: int, target_uid: int):
    """DELETE /groups/:id/members/:uid — admins/moderators remove anyone; members leave."""
    group_service.remove_member(
        group_id=group_id,
        caller_id=g.user_id,
        target_user_id=target_uid,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({
        "data": {
            "removed": True,
            "group_id": group_id,
            "user_id": target_uid,
        },
        "warnings": [],
    }), 200


@groups_bp.route("/<int:group_id>/period-mode", methods=["PATCH"])
@require_auth
def set_period_mode(group_id: int):
    data = PeriodModeSchema().load(request.get_json(force=True) or {})
    result = period_service.set_period_mode(
        group_id=group_id,
        caller_id=g.user_id,
        mode=data["period_mode"],
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
