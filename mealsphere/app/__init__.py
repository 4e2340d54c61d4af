"""
app/__init__.py — create_app(config_name) builds a configured Flask app.

Nothing happens at import time, so tests can build isolated apps and
Alembic can import the metadata without starting a server.

Order inside create_app:
  config → logging → db/ma → calculation cache → models → blueprints
  → error handlers → dev CORS
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from mealsphere.config import config_by_name, validate_production_config

# (module, blueprint attribute, url prefix)
_BLUEPRINTS = (
    ("auth", "auth_bp", "/api/v1/auth"),
    ("groups", "groups_bp", "/api/v1/groups"),
    ("periods", "periods_bp", "/api/v1/groups"),
    ("meals", "meals_bp", "/api/v1/groups"),
    ("expenses", "expenses_bp", "/api/v1/groups"),
    ("transactions", "transactions_bp", "/api/v1/groups"),
    ("payments", "payments_bp", "/api/v1/groups"),
    ("calculations", "calculations_bp", "/api/v1/groups"),
)

# Messages for ValidationErrors raised with a bare error code.
_CODE_MESSAGES = {
    "INVALID_AMOUNT_PRECISION": "Amount must have at most 2 decimal places.",
    "INVALID_DATE_RANGE": "end_date must be after start_date.",
}


class DecimalJSONProvider(DefaultJSONProvider):
    """Decimal("10.50") → "10.50"; dates as ISO-8601 instead of RFC 822."""

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return super().default(o)


def create_app(config_name: str = "development") -> Flask:
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    app.config.from_object(config_by_name.get(config_name, config_by_name["development"]))
    if config_name == "production":
        validate_production_config(app)

    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    app.logger.setLevel(getattr(logging, level, logging.INFO))

    from mealsphere.app.cache import InMemoryCacheStore
    from mealsphere.app.extensions import CACHE_EXTENSION_KEY, db, ma

    db.init_app(app)
    ma.init_app(app)

    cache = None
    if app.config.get("CACHE_ENABLED", True):
        cache = InMemoryCacheStore(
            active_ttl=app.config.get("CACHE_TTL_ACTIVE", 120),
            closed_ttl=app.config.get("CACHE_TTL_CLOSED", 3600),
        )
    app.extensions[CACHE_EXTENSION_KEY] = cache

    # Populates db.metadata; the names themselves are unused here.
    import mealsphere.app.models  # noqa: F401

    _register_blueprints(app)
    _register_error_handlers(app)
    if app.config.get("DEBUG") or app.config.get("TESTING"):
        _allow_any_origin(app)

    return app


def _register_blueprints(app: Flask) -> None:
    from importlib import import_module

    for module_name, attr, prefix in _BLUEPRINTS:
        module = import_module(f"mealsphere.app.routes.{module_name}")
        app.register_blueprint(getattr(module, attr), url_prefix=prefix)


def _first_validation_error(messages) -> tuple[str | None, str]:
    """
    Reduces marshmallow's messages to (field, message) for the first error.
    Schema-level errors (_schema) have no field.
    """
    if isinstance(messages, list):
        return None, str(messages[0]) if messages else "Invalid input."
    if not isinstance(messages, dict) or not messages:
        return None, "Invalid input."

    field, errors = next(iter(messages.items()))
    if field == "_schema":
        field = None
    if isinstance(errors, list):
        return field, str(errors[0]) if errors else "Invalid value."
    if isinstance(errors, dict):
        # Nested schema or list item, e.g. {"0": {"amount": [...]}}
        return field, str(next(iter(errors.values()), "Invalid value."))
    return field, str(errors)


def _error_body(code: str, message: str, field: str | None = None) -> dict:
    body = {"code": code, "message": message}
    if field is not None:
        body["field"] = field
    return {"error": body}


def _register_error_handlers(app: Flask) -> None:
    """
    AppError        → its own envelope and status
    ValidationError → 400, first field error only
    HTTPException   → its status (unknown route, wrong method, bad JSON)
    SQLAlchemyError → 500 STORE_FAILURE, session rolled back
    Exception       → 500 INTERNAL_ERROR

    Stack traces are logged, never returned.
    """
    from mealsphere.app.errors import AppError, ErrorCode
    from mealsphere.app.extensions import db

    known_codes = {v for k, v in vars(ErrorCode).items() if not k.startswith("_")}

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        field, message = _first_validation_error(error.messages)
        if message in known_codes:
            code, message = message, _CODE_MESSAGES.get(message, "Invalid input.")
        elif message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
        else:
            code = ErrorCode.INVALID_FIELD
        return jsonify(_error_body(code, message, field)), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        code = ErrorCode.INVALID_FIELD if error.code == 400 else error.name.upper().replace(" ", "_")
        return jsonify(_error_body(code, error.description or error.name)), error.code

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(error: SQLAlchemyError):
        app.logger.exception("store failure on %s %s", request.method, request.path)
        db.session.rollback()
        return jsonify(_error_body(
            ErrorCode.STORE_FAILURE, "The data store is unavailable. Please try again later.",
        )), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        app.logger.exception("unhandled %s on %s %s", type(error).__name__, request.method, request.path)
        return jsonify(_error_body(
            ErrorCode.INTERNAL_ERROR, "An unexpected error occurred. Please try again later.",
        )), 500


def _allow_any_origin(app: Flask) -> None:
    """Permissive CORS for local front-end development and tests."""

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin") or "*"
        response.headers["Vary"] = "Origin"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        return response
