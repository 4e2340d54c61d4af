"""
routes/transactions.py — Account transaction route handlers.

Endpoints (url_prefix=/api/v1/groups):
  GET    /groups/:id/transactions               → 200  ?period_id=&user_id=
  POST   /groups/:id/transactions               → 201
  PATCH  /groups/:id/transactions/:tid          → 200  admin / accountant
  DELETE /groups/:id/transactions/:tid          → 200  admin
  GET    /groups/:id/transactions/:tid/history  → 200  audit trail
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from mealsphere.app.extensions import db, get_cache
from mealsphere.app.middleware.auth_middleware import require_auth
from mealsphere.app.schemas.serializers import transaction_serializer, transactions_serializer
from mealsphere.app.schemas.transaction_schema import (
    CreateTransactionSchema,
    PatchTransactionSchema,
)
from mealsphere.app.services import transaction_service

transactions_bp = Blueprint("transactions", __name__)


@transactions_bp.route("/<int:group_id>/transactions", methods=["GET"])
@require_auth
def list_transactions(group_id: int):
    txns = transaction_service.list_transactions(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        period_id=request.args.get("period_id", type=int),
        user_id=request.args.get("user_id", type=int),
    )
    return jsonify({"data": transactions_serializer.dump(txns), "warnings": []}), 200


@transactions_bp.route("/<int:group_id>/transactions", methods=["POST"])
@require_auth
def create_transaction(group_id: int):
    data = CreateTransactionSchema().load(request.get_json(force=True) or {})
    txn = transaction_service.create_transaction(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": transaction_serializer.dump(txn), "warnings": []}), 201


@transactions_bp.route("/<int:group_id>/transactions/<int:transaction_id>", methods=["PATCH"])
@require_auth
def update_transaction(group_id: int, transaction_id: int):
    data = PatchTransactionSchema().load(request.get_json(force=True) or {})
    txn = transaction_service.update_transaction(
        group_id=group_id,
        transaction_id=transaction_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": transaction_serializer.dump(txn), "warnings": []}), 200


@transactions_bp.route("/<int:group_id>/transactions/<int:transaction_id>", methods=["DELETE"])
@require_auth
def delete_transaction(group_id: int, transaction_id: int):
    transaction_service.delete_transaction(
        group_id=group_id,
        transaction_id=transaction_id,
        caller_id=g.user_id,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({
        "data": {"deleted": True, "transaction_id": transaction_id},
        "warnings": [],
    }), 200


@transactions_bp.route("/<int:group_id>/transactions/<int:transaction_id>/history", methods=["GET"])
@require_auth
def transaction_history(group_id: int, transaction_id: int):
    result = transaction_service.get_transaction_history(
        group_id=group_id,
        transaction_id=transaction_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
