"""
schemas/auth_schema.py — Request bodies for /auth.

Shape and strength are checked here; DUPLICATE_EMAIL and credential
correctness need the database and live in services/auth_service.py.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from mealsphere.app.schemas.validators import validate_non_empty_after_trim

_DISPLAY_NAME = [
    validate.Length(min=1, max=100, error="Name must be between 1 and 100 characters."),
    validate_non_empty_after_trim,
]


def validate_password_strength(value: str) -> None:
    """At least 8 characters with a letter and a digit."""
    problems = []
    if len(value) < 8:
        problems.append("at least 8 characters")
    if not any(c.isalpha() for c in value):
        problems.append("a letter")
    if not any(c.isdigit() for c in value):
        problems.append("a digit")
    if problems:
        raise ValidationError("Password needs " + ", ".join(problems) + ".")


def _avatar_field(**kwargs) -> fields.Url:
    return fields.Url(validate=validate.Length(max=500), allow_none=True, **kwargs)


class RegisterSchema(Schema):
    """POST /auth/register"""

    name = fields.Str(required=True, validate=_DISPLAY_NAME)
    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.Str(required=True, load_only=True, validate=validate_password_strength)
    image = _avatar_field(load_default=None)


class LoginSchema(Schema):
    """POST /auth/login"""

    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True)


class RefreshTokenSchema(Schema):
    """POST /auth/refresh and POST /auth/logout"""

    refresh_token = fields.Str(required=True)


class UpdateProfileSchema(Schema):
    """PATCH /auth/me — send name, image, or both; image may be null."""

    name = fields.Str(validate=_DISPLAY_NAME)
    image = _avatar_field()

    @validates_schema
    def require_a_change(self, data: dict, **kwargs) -> None:
        if not data:
            raise ValidationError({"name": ["Provide name or image to update."]})
