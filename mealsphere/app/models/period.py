"""
models/period.py — Period (billing cycle) table definition.

No business logic. No imports from services or routes.

Key design points:
  - At most one ACTIVE period per group. This is enforced by the partial
    unique index uq_periods_one_active_per_group (group_id WHERE
    status = 'active'), not only by the lifecycle service's check, so two
    concurrent "start period" requests cannot both succeed.
  - A period exclusively owns its ledger rows (meals, guest meals, extra
    expenses, shopping items, account transactions, payments).
  - Money columns are Numeric(12, 2) — never Float.
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
    Text,
    UniqueConstraint,
    false,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealsphere.app.extensions import db
from mealsphere.app.models.enums import PeriodStatus, enum_column_type

_ACTIVE_ONLY = text("status = 'active'")


class Period(db.Model):
    __tablename__ = "periods"

    __table_args__ = (
        UniqueConstraint("group_id", "name", name="uq_periods_group_name"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="ck_periods_date_order",
        ),
        Index(
            "uq_periods_one_active_per_group",
            "group_id",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    # NULL while the period is open.
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[PeriodStatus] = mapped_column(
        enum_column_type(PeriodStatus, "period_status"),
        nullable=False,
        default=PeriodStatus.ACTIVE,
    )

    is_locked: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    opening_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        server_default="0",
    )

    # Computed when the period is ended.
    closing_balance: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )

    carry_forward: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="periods",
    )

    meals: Mapped[list["Meal"]] = relationship(  # noqa: F821
        "Meal",
        back_populates="period",
        cascade="all, delete-orphan",
    )

    guest_meals: Mapped[list["GuestMeal"]] = relationship(  # noqa: F821
        "GuestMeal",
        back_populates="period",
        cascade="all, delete-orphan",
    )

    extra_expenses: Mapped[list["ExtraExpense"]] = relationship(  # noqa: F821
        "ExtraExpense",
        back_populates="period",
        cascade="all, delete-orphan",
    )

    shopping_items: Mapped[list["ShoppingItem"]] = relationship(  # noqa: F821
        "ShoppingItem",
        back_populates="period",
        cascade="all, delete-orphan",
    )

    transactions: Mapped[list["AccountTransaction"]] = relationship(  # noqa: F821
        "AccountTransaction",
        back_populates="period",
        cascade="all, delete-orphan",
    )

    payments: Mapped[list["Payment"]] = relationship(  # noqa: F821
        "Payment",
        back_populates="period",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Period id={self.id} "
            f"group_id={self.group_id} "
            f"status={self.status} "
            f"locked={self.is_locked}>"
        )
