"""
services/auth_service.py — Member accounts and the tokens that identify them.

Token model:
  access  — HS256 JWT, sub = str(user_id), short-lived, never stored
  refresh — 64 hex chars from `secrets`, stored as a SHA-256 digest;
            revoked on logout, stamped on every use, pruned once expired

Layer rules:
  - Reads current_app.config for JWT settings and the bcrypt cost only.
  - No request/g access, no HTTP status handling beyond AppError.
  - Flushes; the route commits.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timezone

import jwt
from flask import current_app
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from mealsphere.app.errors import AppError, ErrorCode
from mealsphere.app.models.refresh_token import RefreshToken
from mealsphere.app.models.user import User
from mealsphere.app.services.passwords import DEFAULT_ROUNDS, check_password, hash_password

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands DateTime(timezone=True) columns back without tzinfo.
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


def _digest(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _profile(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "image": user.image,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _invalid_refresh_token() -> AppError:
    return AppError(
        ErrorCode.REFRESH_TOKEN_INVALID,
        "The refresh token is invalid, expired, or has been revoked.",
        401,
    )


def _find_by_email(email: str, session: Session) -> User | None:
    return session.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()


# ── Tokens ─────────────────────────────────────────────────────────────────

def issue_access_token(user_id: int) -> str:
    config = current_app.config
    issued = _utcnow()
    claims = {
        "sub": str(user_id),
        "iat": issued,
        "exp": issued + config["JWT_ACCESS_TOKEN_EXPIRES"],
        "jti": secrets.token_hex(8),  # two tokens in the same second still differ
    }
    return jwt.encode(claims, config["JWT_SECRET_KEY"], algorithm=config.get("JWT_ALGORITHM", "HS256"))


def _session_tokens(user: User, session: Session) -> dict:
    """Access + refresh pair for a freshly authenticated user."""
    raw_refresh = secrets.token_hex(32)
    session.add(RefreshToken(
        user_id=user.id,
        token_hash=_digest(raw_refresh),
        expires_at=_utcnow() + current_app.config["JWT_REFRESH_TOKEN_EXPIRES"],
    ))
    session.flush()
    return {
        "user": _profile(user),
        "access_token": issue_access_token(user.id),
        "refresh_token": raw_refresh,
    }


def _live_refresh_token(raw_token: str, session: Session) -> RefreshToken:
    record = session.execute(
        select(RefreshToken).where(RefreshToken.token_hash == _digest(raw_token))
    ).scalar_one_or_none()
    if record is None or record.revoked or _as_utc(record.expires_at) <= _utcnow():
        raise _invalid_refresh_token()
    return record


# ── Accounts ───────────────────────────────────────────────────────────────

def register_user(
        name: str,
        email: str,
        password: str,
        session: Session,
        image: str | None = None,
) -> dict:
    """
    Creates the account and signs it in.

    Raises:
      AppError(DUPLICATE_EMAIL, 409) — compared case-insensitively
    """
    email = email.strip().lower()
    if _find_by_email(email, session) is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            409,
            field="email",
        )

    user = User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(
            password, current_app.config.get("BCRYPT_LOG_ROUNDS", DEFAULT_ROUNDS),
        ),
        image=image,
    )
    session.add(user)
    session.flush()

    logger.info("user %s registered", user.id)
    return _session_tokens(user, session)


def login_user(email: str, password: str, session: Session) -> dict:
    """
    Unknown email and wrong password get the same INVALID_CREDENTIALS (401)
    so accounts cannot be enumerated. A successful login also drops the
    user's expired refresh tokens.
    """
    user = _find_by_email(email, session)
    if user is None or not check_password(password, user.password_hash):
        raise AppError(ErrorCode.INVALID_CREDENTIALS, "The email or password is incorrect.", 401)

    session.execute(
        delete(RefreshToken).where(
            RefreshToken.user_id == user.id,
            RefreshToken.expires_at <= _utcnow(),
        ).execution_options(synchronize_session=False)
    )
    return _session_tokens(user, session)


def refresh_access_token(raw_refresh_token: str, session: Session) -> dict:
    """New access token; the refresh token itself is not rotated."""
    record = _live_refresh_token(raw_refresh_token, session)
    record.last_used_at = _utcnow()
    session.flush()
    return {"access_token": issue_access_token(record.user_id)}


def logout_user(raw_refresh_token: str, session: Session) -> None:
    """Revokes the refresh token. A second logout with it is a 401."""
    record = _live_refresh_token(raw_refresh_token, session)
    record.revoked = True
    session.flush()


def get_current_user(user_id: int, session: Session) -> dict:
    user = session.get(User, user_id)
    if user is None:
        raise AppError(ErrorCode.USER_NOT_FOUND, f"User {user_id} not found.", 404)
    return _profile(user)


def update_profile(user_id: int, data: dict, session: Session) -> dict:
    """data may carry name and image (None clears the image)."""
    user = session.get(User, user_id)
    if user is None:
        raise AppError(ErrorCode.USER_NOT_FOUND, f"User {user_id} not found.", 404)

    if "name" in data:
        user.name = data["name"].strip()
    if "image" in data:
        user.image = data["image"]
    session.flush()
    return _profile(user)
