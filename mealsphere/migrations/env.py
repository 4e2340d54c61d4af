"""
Alembic environment for MealSphere.

    DATABASE_URL=postgresql://... alembic upgrade head
    TEST_RUN=1 TEST_DATABASE_URL=... alembic upgrade head

Both variables may also come from the .env files config.py loads.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

import mealsphere.app.models  # noqa: F401  (registers the tables)
from mealsphere.app.extensions import db
from mealsphere.config import normalise_db_url

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

_url_var = "TEST_DATABASE_URL" if os.getenv("TEST_RUN") else "DATABASE_URL"
db_url = normalise_db_url(os.environ[_url_var])
config.set_main_option("sqlalchemy.url", db_url)


def _configure(**kwargs) -> None:
    context.configure(target_metadata=db.metadata, compare_type=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    _configure(url=db_url, literal_binds=True, dialect_opts={"paramstyle": "named"})
else:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        # SQLite can only ALTER TABLE in batch mode.
        _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")
