"""
models/extra_expense.py — ExtraExpense table definition.

A group cost that is not a shopping item (gas, rent share, utilities...).
amount is Numeric(12, 2) and strictly positive.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealsphere.app.extensions import db


class ExtraExpense(db.Model):
    __tablename__ = "extra_expenses"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_extra_expenses_amount_positive"),
        CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_extra_expenses_description_nonempty",
        ),
        Index("ix_extra_expenses_group_period", "group_id", "period_id"),
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

    # The contributing member.
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(String(255), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    date: Mapped[date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    period: Mapped["Period"] = relationship(  # noqa: F821
        "Period",
        back_populates="extra_expenses",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<ExtraExpense id={self.id} amount={self.amount}>"
