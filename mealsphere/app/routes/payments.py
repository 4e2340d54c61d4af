"""
routes/payments.py — Payment record route handlers.

Endpoints (url_prefix=/api/v1/groups):
  GET    /groups/:id/payments               → 200  ?period_id=
  POST   /groups/:id/payments               → 201
  PATCH  /groups/:id/payments/:pid/status   → 200  admin / accountant
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from mealsphere.app.extensions import db, get_cache
from mealsphere.app.middleware.auth_middleware import require_auth
from mealsphere.app.schemas.serializers import payment_serializer, payments_serializer
from mealsphere.app.schemas.transaction_schema import CreatePaymentSchema, UpdatePaymentStatusSchema
from mealsphere.app.services import payment_service

payments_bp = Blueprint("payments", __name__)


@payments_bp.route("/<int:group_id>/payments", methods=["GET"])
@require_auth
def list_payments(group_id: int):
    payments = payment_service.list_payments(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        period_id=request.args.get("period_id", type=int),
    )
    return jsonify({"data": payments_serializer.dump(payments), "warnings": []}), 200


@payments_bp.route("/<int:group_id>/payments", methods=["POST"])
@require_auth
def create_payment(group_id: int):
    data = CreatePaymentSchema().load(request.get_json(force=True) or {})
    payment = payment_service.create_payment(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": payment_serializer.dump(payment), "warnings": []}), 201


@payments_bp.route("/<int:group_id>/payments/<int:payment_id>/status", methods=["PATCH"])
@require_auth
def update_payment_status(group_id: int, payment_id: int):
    data = UpdatePaymentStatusSchema().load(request.get_json(force=True) or {})
    payment = payment_service.update_payment_status(
        group_id=group_id,
        payment_id=payment_id,
        caller_id=g.user_id,
        status=data["status"],
        session=db.session,
        cache=get_cache(),
    )
    db.session.commit()
    return jsonify({"data": payment_serializer.dump(payment), "warnings": []}), 200
