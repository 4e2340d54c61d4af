"""
extensions.py — Flask extension singletons.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` or `ma` from here wherever needed.

    from mealsphere.app.extensions import db, ma

The calculation cache is not a Flask extension package; the factory builds a
CacheStore and registers it under app.extensions[CACHE_EXTENSION_KEY].
Route handlers fetch it with get_cache() and pass it to services as an
argument, the same way they pass db.session.
"""

from flask import current_app
from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Marshmallow instance, used for response serializers only
# (app/schemas/serializers.py), which are dumped inside request handlers.
#
# Request validation schemas (app/schemas/*_schema.py) inherit from
# marshmallow.Schema directly, NOT from ma.Schema, so unit tests can
# instantiate them without an application context.
ma = Marshmallow()

CACHE_EXTENSION_KEY = "mealsphere_cache"


def get_cache():
    """Returns the CacheStore registered on the current app, or None."""
    return current_app.extensions.get(CACHE_EXTENSION_KEY)
