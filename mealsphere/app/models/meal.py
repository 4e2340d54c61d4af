"""
models/meal.py — Meal table definition.

One row is one member's claim on one meal slot on one date. A member can
hold each (date, slot) at most once per group.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealsphere.app.extensions import db
from mealsphere.app.models.enums import MealType, enum_column_type


class Meal(db.Model):
    __tablename__ = "meals"

    __table_args__ = (
        UniqueConstraint(
            "user_id", "group_id", "date", "meal_type",
            name="uq_meals_user_group_date_type",
        ),
        Index("ix_meals_group_period", "group_id", "period_id"),
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

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    period: Mapped["Period"] = relationship(  # noqa: F821
        "Period",
        back_populates="meals",
    )

    user: Mapped["User"] = relationship("User")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Meal id={self.id} user_id={self.user_id} "
            f"date={self.date} type={self.meal_type}>"
        )
