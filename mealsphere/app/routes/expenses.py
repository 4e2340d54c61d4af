"""
routes/expenses.py — Extra expense and shopping item route handlers.

Endpoints (url_prefix=/api/v1/groups):
  GET    /groups/:id/expenses              → 200  ?period_id=
  POST   /groups/:id/expenses              → 201
  PATCH  /groups/:id/expenses/:eid         → 200
  DELETE /groups/:id/expenses/:eid         → 200
  GET    /groups/:id/shopping              → 200  ?period_id=
  POST   /groups/:id/shopping              → 201
  PATCH  /groups/:id/shopping/:item_id     → 200
  DELETE /groups/:id/shopping/:item_id     → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from mealsphere.app.extensions import db, get_cache
from mealsphere.app.middleware.auth_middleware import require_auth
from mealsphere.app.schemas.expense_schema import (
    CreateExtraExpenseSchema,
    CreateShoppingItemSchema,
    PatchExtraExpenseSchema,
    PatchShoppingItemSchema,
)
from mealsphere.app.schemas.serializers import (
    expense_serializer,
    expenses_serializer,
    shopping_item_serializer,
    shopping_items_serializer,
)
from mealsphere.app.services import expense_service

expenses_bp = Blueprint("expenses", __name__)


# ── Extra expenses ─────────────────────────────────────────────────────────

@expenses_bp.route("/<int:group_id>/expenses", methods=["GET"])
@require_auth
def list_expenses(group_id: int):
    expenses = expense_service.list_extra_expenses(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        period_id=request.args.get("period_id", type=int),
    )
    return jsonify({"data": expenses_serializer.dump(expenses), "warnings": []}), 200


@expenses_bp.route("/<int:group_id>/expenses", methods=["POST"])
@require_auth
def create_expense(group_id: int):
    data = CreateExtraExpenseSchema().load(request.get_json(force=True) or {})
    expense = expense_service.add_extra_expense(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": expense_serializer.dump(expense), "warnings": []}), 201


@expenses_bp.route("/<int:group_id>/expenses/<int:expense_id>", methods=["PATCH"])
@require_auth
def edit_expense(group_id: int, expense_id: int):
    data = PatchExtraExpenseSchema().load(request.get_json(force=True) or {})
    expense = expense_service.update_extra_expense(
        group_id=group_id,
        expense_id=expense_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": expense_serializer.dump(expense), "warnings": []}), 200


@expenses_bp.route("/<int:group_id>/expenses/<int:expense_id>", methods=["DELETE"])
@require_auth
def delete_expense(group_id: int, expense_id: int):
    expense_service.delete_extra_expense(
        group_id=group_id,
        expense_id=expense_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": {"deleted": True, "expense_id": expense_id}, "warnings": []}), 200


# ── Shopping items ─────────────────────────────────────────────────────────

@expenses_bp.route("/<int:group_id>/shopping", methods=["GET"])
@require_auth
def list_shopping(group_id: int):
    items = expense_service.list_shopping_items(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        period_id=request.args.get("period_id", type=int),
    )
    return jsonify({"data": shopping_items_serializer.dump(items), "warnings": []}), 200


@expenses_bp.route("/<int:group_id>/shopping", methods=["POST"])
@require_auth
def create_shopping_item(group_id: int):
    data = CreateShoppingItemSchema().load(request.get_json(force=True) or {})
    item = expense_service.add_shopping_item(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": shopping_item_serializer.dump(item), "warnings": []}), 201


@expenses_bp.route("/<int:group_id>/shopping/<int:item_id>", methods=["PATCH"])
@require_auth
def edit_shopping_item(group_id: int, item_id: int):
    data = PatchShoppingItemSchema().load(request.get_json(force=True) or {})
    item = expense_service.update_shopping_item(
        group_id=group_id,
        item_id=item_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": shopping_item_serializer.dump(item), "warnings": []}), 200


@expenses_bp.route("/<int:group_id>/shopping/<int:item_id>", methods=["DELETE"])
@require_auth
def delete_shopping_item(group_id: int, item_id: int):
    expense_service.delete_shopping_item(
        group_id=group_id,
        item_id=item_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": {"deleted": True, "item_id": item_id}, "warnings": []}), 200
