"""Meal settings per group and standing auto-meal orders per member.

Revision: 002_meal_settings
Revises:  001_initial_schema
Created:  2026-10-18

Both tables hang off groups with ON DELETE CASCADE; auto_meal_settings.user_id
also cascades, so removing an account drops its standing order.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "002_meal_settings"
down_revision: str | None = "001_initial_schema"
branch_labels: tuple | None = None
depends_on: tuple | None = None


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    op.create_table(
        "meal_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("auto_meal_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("max_meals_per_day", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("allow_guest_meals", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("guest_meal_limit", sa.Integer(), nullable=True),
        _updated_at(),
        sa.CheckConstraint(
            "max_meals_per_day BETWEEN 1 AND 3",
            name="ck_meal_settings_max_meals_per_day",
        ),
        sa.CheckConstraint(
            "guest_meal_limit IS NULL OR guest_meal_limit >= 0",
            name="ck_meal_settings_guest_meal_limit",
        ),
    )

    op.create_table(
        "auto_meal_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("breakfast_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("lunch_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("dinner_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("guest_meal_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("excluded_dates", sa.JSON(), nullable=False),
        _updated_at(),
        sa.UniqueConstraint("group_id", "user_id", name="uq_auto_meal_settings_group_user"),
    )
    op.create_index("ix_auto_meal_settings_group_id", "auto_meal_settings", ["group_id"])


def downgrade() -> None:
    op.drop_table("auto_meal_settings")
    op.drop_table("meal_settings")
