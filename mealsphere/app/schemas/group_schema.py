"""
schemas/group_schema.py — Marshmallow schemas for group and membership endpoints.

Validation responsibility:
  - This file: field types, lengths, enum values, non-blank names.
  - services/group_service.py: group password check, capacity, existing
    membership and role permissions (all need the DB).

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from mealsphere.app.models.enums import PeriodMode, Role
from mealsphere.app.schemas.validators import validate_non_empty_after_trim


class CreateGroupSchema(Schema):
    """
    POST /groups

    A private group needs a password (checked in group_service, because the
    rule depends on is_private).
    """

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=100, error="Group name must be between 1 and 100 characters."),
            validate_non_empty_after_trim,
        ],
    )
    description = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=500))
    is_private = fields.Bool(load_default=False)
    password = fields.Str(
        load_default=None,
        allow_none=True,
        load_only=True,
        validate=validate.Length(min=4, max=128),
    )
    max_members = fields.Int(
        load_default=None,
        allow_none=True,
        strict=True,
        validate=validate.Range(min=1, max=500, error="max_members must be between 1 and 500."),
    )
    period_mode = fields.Enum(PeriodMode, by_value=True, load_default=PeriodMode.CUSTOM)


class JoinGroupSchema(Schema):
    """POST /groups/:id/join — password only matters for private groups."""

    password = fields.Str(load_default=None, allow_none=True, load_only=True)


class AddMemberSchema(Schema):
    """POST /groups/:id/members (admin or moderator)"""

    user_id = fields.Int(
        required=True,
        strict=True,  # reject floats like 1.0
        validate=validate.Range(min=1, error="user_id must be a positive integer."),
    )
    role = fields.Enum(Role, by_value=True, load_default=Role.MEMBER)


class UpdateMemberRoleSchema(Schema):
    """PATCH /groups/:id/members/:user_id (admin only)"""

    role = fields.Enum(Role, by_value=True, required=True)


class PeriodModeSchema(Schema):
    """PATCH /groups/:id/period-mode (admin only)"""

    period_mode = fields.Enum(PeriodMode, by_value=True, required=True)
