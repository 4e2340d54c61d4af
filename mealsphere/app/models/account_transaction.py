"""
models/account_transaction.py — AccountTransaction table definition.

A signed monetary movement recorded by `user_id` (the creator) against
`target_user_id` inside one group and period. The sum of amounts targeting a
user in a period is that user's balance for the period; the sign convention
belongs to the caller (a charge is usually negative, a payment positive).

Every create/update/delete is mirrored into TransactionHistory by
transaction_service.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealsphere.app.extensions import db
from mealsphere.app.models.enums import TransactionType, enum_column_type


class AccountTransaction(db.Model):
    __tablename__ = "account_transactions"

    __table_args__ = (
        Index("ix_account_transactions_group_period", "group_id", "period_id"),
        Index("ix_account_transactions_target", "target_user_id"),
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

    target_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Signed. Zero is rejected by the request schema, not here.
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    type: Mapped[TransactionType] = mapped_column(
        enum_column_type(TransactionType, "transaction_type"),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=func.now(),
    )

    period: Mapped["Period"] = relationship(  # noqa: F821
        "Period",
        back_populates="transactions",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<AccountTransaction id={self.id} "
            f"target_user_id={self.target_user_id} "
            f"amount={self.amount} type={self.type}>"
        )
