"""
tests/unit/test_config.py — Environment parsing and the production guard.
"""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

import pytest

from mealsphere import config


def test_postgres_scheme_is_rewritten():
    assert config.normalise_db_url("postgres://u:p@h/db") == "postgresql://u:p@h/db"
    assert config.normalise_db_url("sqlite://") == "sqlite://"


def test_env_ttl_prefers_seconds_over_alias(monkeypatch):
    monkeypatch.setenv("X_TTL", "30")
    monkeypatch.setenv("X_TTL_MINUTES", "5")
    assert config._env_ttl("X_TTL", 900, "X_TTL_MINUTES", 60) == timedelta(seconds=30)


def test_env_ttl_reads_alias_units(monkeypatch):
    monkeypatch.delenv("X_TTL", raising=False)
    monkeypatch.setenv("X_TTL_MINUTES", "5")
    assert config._env_ttl("X_TTL", 900, "X_TTL_MINUTES", 60) == timedelta(minutes=5)


def test_env_int_falls_back_on_garbage(monkeypatch):
    monkeypatch.setenv("X_LIMIT", "ten")
    assert config._env_int("X_LIMIT", 10) == 10


@pytest.mark.parametrize("raw, expected", [("true", True), ("0", False), ("", True)])
def test_env_bool(monkeypatch, raw, expected):
    monkeypatch.setenv("X_FLAG", raw)
    assert config._env_bool("X_FLAG", True) is expected


def _app(**values):
    defaults = {
        "SQLALCHEMY_DATABASE_URI": "postgresql://db",
        "SECRET_KEY": "s3cret",
        "JWT_SECRET_KEY": "s3cret-too",
    }
    defaults.update(values)
    return SimpleNamespace(config=defaults)


def test_production_guard_accepts_real_values():
    config.validate_production_config(_app())


@pytest.mark.parametrize(
    "overrides",
    [
        {"SQLALCHEMY_DATABASE_URI": ""},
        {"SECRET_KEY": "change-me-in-production"},
        {"JWT_SECRET_KEY": "change-me-in-production"},
    ],
)
def test_production_guard_rejects_missing_or_placeholder(overrides):
    with pytest.raises(ValueError):
        config.validate_production_config(_app(**overrides))


def test_testing_config_uses_cheap_bcrypt():
    assert config.config_by_name["testing"].BCRYPT_LOG_ROUNDS == 4


def test_shopping_stays_out_of_the_rate_unless_enabled():
    assert config.BaseConfig.MEAL_RATE_INCLUDES_SHOPPING is False
    assert config.config_by_name["testing"].MEAL_RATE_INCLUDES_SHOPPING is False
