"""
models/shopping_item.py — ShoppingItem table definition.

`quantity` doubles as the item's cost: it is a Numeric(12, 2) monetary
surrogate, summed into the shopping total of a period. Only purchased items
count towards that total.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    func,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealsphere.app.extensions import db


class ShoppingItem(db.Model):
    __tablename__ = "shopping_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_shopping_items_quantity_positive"),
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_shopping_items_name_nonempty",
        ),
        Index("ix_shopping_items_group_period", "group_id", "period_id"),
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
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    unit: Mapped[str | None] = mapped_column(String(30), nullable=True)

    date: Mapped[date] = mapped_column(Date, nullable=False)

    purchased: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    period: Mapped["Period"] = relationship(  # noqa: F821
        "Period",
        back_populates="shopping_items",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<ShoppingItem id={self.id} name={self.name!r} quantity={self.quantity}>"
