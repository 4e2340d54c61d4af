"""
models/membership.py — A user's seat in a group, and the role that seat carries.

The role decides every capability check in services/permissions.py. A
banned seat is kept (so ledger rows still resolve to a member) but
require_member treats it as no seat at all.

Deleting the group removes its memberships; a user with any membership
cannot be deleted (RESTRICT).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, UniqueConstraint, false, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealsphere.app.extensions import db
from mealsphere.app.models.enums import Role, enum_column_type


class Membership(db.Model):
    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "group_id", name="uq_memberships_user_group"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True,
    )

    role: Mapped[Role] = mapped_column(
        enum_column_type(Role, "member_role"), nullable=False, default=Role.MEMBER,
    )
    is_banned: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false(),
    )

    # Settlement rows are listed in joining order.
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(),
    )

    user: Mapped["User"] = relationship(back_populates="memberships")  # noqa: F821
    group: Mapped["Group"] = relationship(back_populates="memberships")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Membership user={self.user_id} group={self.group_id} {self.role.value}>"
