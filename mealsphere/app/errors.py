"""
errors.py — AppError and the codes it carries.

Services raise AppError; routes let it propagate; the handler in
app/__init__.py renders it as {"error": {"code", "message", "field"?}}.
Codes are part of the API contract and never change once published.
401 means "who are you?", 403 means "you may not"; the two are not mixed.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(self, code: str, message: str, http_status: int, field: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.field = field

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        if self.field is not None:
            body["field"] = self.field
        return {"error": body}

    def __repr__(self) -> str:
        return f"AppError({self.code!r}, {self.http_status}, {self.message!r})"


class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    INVALID_DATE_RANGE         = "INVALID_DATE_RANGE"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    ALREADY_MEMBER             = "ALREADY_MEMBER"
    GROUP_FULL                 = "GROUP_FULL"
    DUPLICATE_MEAL             = "DUPLICATE_MEAL"
    ACTIVE_PERIOD_EXISTS       = "ACTIVE_PERIOD_EXISTS"
    DUPLICATE_PERIOD_NAME      = "DUPLICATE_PERIOD_NAME"
    PERIOD_OVERLAP             = "PERIOD_OVERLAP"
    NO_ACTIVE_PERIOD           = "NO_ACTIVE_PERIOD"
    PERIOD_LOCKED              = "PERIOD_LOCKED"
    PERIOD_NOT_LOCKED          = "PERIOD_NOT_LOCKED"
    PERIOD_NOT_ACTIVE          = "PERIOD_NOT_ACTIVE"
    PERIOD_ARCHIVED            = "PERIOD_ARCHIVED"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    MEMBER_NOT_FOUND           = "MEMBER_NOT_FOUND"
    PERIOD_NOT_FOUND           = "PERIOD_NOT_FOUND"
    MEAL_NOT_FOUND             = "MEAL_NOT_FOUND"
    GUEST_MEAL_NOT_FOUND       = "GUEST_MEAL_NOT_FOUND"
    EXPENSE_NOT_FOUND          = "EXPENSE_NOT_FOUND"
    SHOPPING_ITEM_NOT_FOUND    = "SHOPPING_ITEM_NOT_FOUND"
    TRANSACTION_NOT_FOUND      = "TRANSACTION_NOT_FOUND"
    PAYMENT_NOT_FOUND          = "PAYMENT_NOT_FOUND"

    # ── Business Rule Violations (422) ────────────────────────────────────
    MEAL_DATE_OUTSIDE_PERIOD      = "MEAL_DATE_OUTSIDE_PERIOD"
    GUEST_MEAL_LIMIT_EXCEEDED     = "GUEST_MEAL_LIMIT_EXCEEDED"
    AUTO_MEALS_DISABLED           = "AUTO_MEALS_DISABLED"
    TRANSACTION_TYPE_NOT_ALLOWED  = "TRANSACTION_TYPE_NOT_ALLOWED"
    PAYMENT_TARGET_NOT_PRIVILEGED = "PAYMENT_TARGET_NOT_PRIVILEGED"
    INVALID_GROUP_PASSWORD        = "INVALID_GROUP_PASSWORD"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed (unauthorized)
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    REFRESH_TOKEN_INVALID      = "REFRESH_TOKEN_INVALID"  # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── System Errors (500) ────────────────────────────────────────────────
    STORE_FAILURE              = "STORE_FAILURE"
    INTERNAL_ERROR             = "INTERNAL_ERROR"


# ── Shorthand constructors ─────────────────────────────────────────────────
# Used by every service so the same rule always produces the same message.

def not_found(code: str, what: str, ident: int | None = None) -> AppError:
    suffix = f" {ident}" if ident is not None else ""
    return AppError(code, f"{what}{suffix} does not exist.", 404)


def forbidden(message: str) -> AppError:
    return AppError(ErrorCode.FORBIDDEN, message, 403)


def conflict(code: str, message: str) -> AppError:
    return AppError(code, message, 409)


def rule_violation(code: str, message: str, field: str | None = None) -> AppError:
    return AppError(code, message, 422, field=field)
