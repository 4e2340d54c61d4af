"""
models/auto_meal_settings.py — A member's standing meal order.

When the group has auto meals on, trigger_auto_meals books every enabled
slot for each member whose row has is_enabled set. excluded_dates holds
ISO dates ("2026-03-14") the member is away.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, UniqueConstraint, false, func, true
from sqlalchemy.orm import Mapped, mapped_column

from mealsphere.app.extensions import db
from mealsphere.app.models.enums import MealType


class AutoMealSettings(db.Model):
    __tablename__ = "auto_meal_settings"

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_auto_meal_settings_group_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    is_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false(),
    )
    breakfast_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true(),
    )
    lunch_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true(),
    )
    dinner_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true(),
    )
    guest_meal_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false(),
    )

    excluded_dates: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def enabled_meal_types(self) -> list[MealType]:
        flags = {
            MealType.BREAKFAST: self.breakfast_enabled,
            MealType.LUNCH: self.lunch_enabled,
            MealType.DINNER: self.dinner_enabled,
        }
        return [meal_type for meal_type, on in flags.items() if on]

    def __repr__(self) -> str:  # pragma: no cover
        return f"<AutoMealSettings group_id={self.group_id} user_id={self.user_id}>"
