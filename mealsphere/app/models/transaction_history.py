"""
models/transaction_history.py — TransactionHistory table definition.

Append-only audit log. Rows are inserted by transaction_service on every
create, update and delete of an AccountTransaction and are never updated or
deleted afterwards, except by the cascade of a group deletion.

transaction_id and period_id are nullable with ON DELETE SET NULL so the
"delete" entry survives the row it describes.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from mealsphere.app.extensions import db
from mealsphere.app.models.enums import (
    HistoryAction,
    TransactionType,
    enum_column_type,
)


class TransactionHistory(db.Model):
    __tablename__ = "transaction_history"

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    period_id: Mapped[int | None] = mapped_column(
        ForeignKey("periods.id", ondelete="SET NULL"),
        nullable=True,
    )

    transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("account_transactions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Kept even after the transaction row is gone.
    original_transaction_id: Mapped[int] = mapped_column(nullable=False)

    action: Mapped[HistoryAction] = mapped_column(
        enum_column_type(HistoryAction, "history_action"),
        nullable=False,
    )

    target_user_id: Mapped[int] = mapped_column(nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    previous_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    type: Mapped[TransactionType] = mapped_column(
        enum_column_type(TransactionType, "transaction_type"),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    changed_by: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<TransactionHistory id={self.id} "
            f"transaction={self.original_transaction_id} action={self.action}>"
        )
