"""
models/meal_settings.py — Per-group meal rules.

At most one row per group. A group without a row runs on the defaults
below; the row is created the first time a manager changes a setting.
guest_meal_limit NULL means "use the GUEST_MEAL_LIMIT config value".
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, false, func, true
from sqlalchemy.orm import Mapped, mapped_column

from mealsphere.app.extensions import db

DEFAULT_MAX_MEALS_PER_DAY = 3


class MealSettings(db.Model):
    __tablename__ = "meal_settings"

    __table_args__ = (
        CheckConstraint(
            "max_meals_per_day BETWEEN 1 AND 3",
            name="ck_meal_settings_max_meals_per_day",
        ),
        CheckConstraint(
            "guest_meal_limit IS NULL OR guest_meal_limit >= 0",
            name="ck_meal_settings_guest_meal_limit",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    auto_meal_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    max_meals_per_day: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_MAX_MEALS_PER_DAY,
        server_default=str(DEFAULT_MAX_MEALS_PER_DAY),
    )

    allow_guest_meals: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
    )

    guest_meal_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<MealSettings group_id={self.group_id} auto={self.auto_meal_enabled}>"
