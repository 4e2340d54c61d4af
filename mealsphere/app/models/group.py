"""
models/group.py — Group (room) table definition.

No business logic. No imports from services or routes.

Ownership: a Group exclusively owns its memberships, periods, every ledger
row and the transaction history. Deleting a Group deletes all of them, both
through the ORM cascade below and through ON DELETE CASCADE on every child
FK (so a raw SQL delete behaves the same way).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    false,
    func,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealsphere.app.extensions import db
from mealsphere.app.models.enums import PeriodMode, enum_column_type


class Group(db.Model):
    __tablename__ = "groups"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
        CheckConstraint("max_members > 0", name="ck_groups_max_members_positive"),
        CheckConstraint("member_count >= 0", name="ck_groups_member_count_nonneg"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_private: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    # bcrypt hash; only set for private groups.
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    max_members: Mapped[int] = mapped_column(Integer, nullable=False, default=20)

    # Denormalised; kept in step with memberships inside the same transaction.
    member_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    period_mode: Mapped[PeriodMode] = mapped_column(
        enum_column_type(PeriodMode, "period_mode"),
        nullable=False,
        default=PeriodMode.CUSTOM,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
    )

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

    creator: Mapped["User | None"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[created_by],
    )

    memberships: Mapped[list["Membership"]] = relationship(  # noqa: F821
        "Membership",
        back_populates="group",
        cascade="all, delete-orphan",
    )

    periods: Mapped[list["Period"]] = relationship(  # noqa: F821
        "Period",
        back_populates="group",
        cascade="all, delete-orphan",
    )

    transaction_history: Mapped[list["TransactionHistory"]] = relationship(  # noqa: F821
        "TransactionHistory",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group id={self.id} name={self.name!r}>"
