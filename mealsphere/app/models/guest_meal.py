"""
models/guest_meal.py — GuestMeal table definition.

Like Meal, but carries a count of guest portions. Several rows may exist for
the same member/date/slot; the per-slot total is capped by the meal service.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealsphere.app.extensions import db
from mealsphere.app.models.enums import MealType, enum_column_type


class GuestMeal(db.Model):
    __tablename__ = "guest_meals"

    __table_args__ = (
        CheckConstraint("count >= 1", name="ck_guest_meals_count_positive"),
        Index("ix_guest_meals_group_period", "group_id", "period_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
    )

    period_id: Mapped[int] = mapped_column(
        ForeignKey("periods.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    date: Mapped[date] = mapped_column(Date, nullable=False)

    meal_type: Mapped[MealType] = mapped_column(
        enum_column_type(MealType, "meal_type"),
        nullable=False,
    )

    count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    period: Mapped["Period"] = relationship(  # noqa: F821
        "Period",
        back_populates="guest_meals",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<GuestMeal id={self.id} user_id={self.user_id} count={self.count}>"
