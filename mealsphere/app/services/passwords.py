"""
services/passwords.py — bcrypt hashing for account and private-group passwords.

The cost factor comes from BCRYPT_LOG_ROUNDS; callers pass it in so this
module stays free of Flask.
"""

from __future__ import annotations

import bcrypt

DEFAULT_ROUNDS = 12


def hash_password(raw: str, rounds: int = DEFAULT_ROUNDS) -> str:
    return bcrypt.hashpw(raw.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def check_password(raw: str | None, hashed: str | None) -> bool:
    """False for a missing password or hash instead of raising."""
    if not raw or not hashed:
        return False
    return bcrypt.checkpw(raw.encode("utf-8"), hashed.encode("utf-8"))
