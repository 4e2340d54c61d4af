"""
middleware/auth_middleware.py — Bearer token authentication for member routes.

@require_auth reads "Authorization: Bearer <jwt>", verifies it with the
configured secret and stores the member's id on flask.g.user_id.

Only authentication happens here (401). Whether that member may touch a
given group, period or ledger row is decided by the services (403), which
receive the id as a plain int.

Error codes:
  TOKEN_MISSING  (401) — no Authorization header
  TOKEN_INVALID  (401) — wrong scheme, bad signature or unusable sub claim
  TOKEN_EXPIRED  (401) — exp claim in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from mealsphere.app.errors import AppError, ErrorCode


def require_auth(f: Callable) -> Callable:
    """Route decorator: authenticate, then call the view with g.user_id set."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        g.user_id = _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if not header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Send a Bearer token in the Authorization header.",
            401,
        )

    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip() or " " in token.strip():
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must look like: Bearer <token>.",
            401,
        )
    return token.strip()


def _authenticate_request() -> int:
    """Returns the authenticated user id or raises AppError (401)."""
    try:
        payload = jwt.decode(
            _bearer_token(),
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        )
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Use POST /auth/refresh to get a new one.",
            401,
        )
    except jwt.InvalidTokenError:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token does not carry a valid user id.",
            401,
        )
