"""Initial schema — users, groups, periods and the meal ledger.

Revision: 001_initial_schema
Created:  2026-10-18

Append-only: never edit this file after it has been applied to a database.
Schema changes go in a NEW migration file.

Enum columns are VARCHAR(20) holding the lowercase enum value (the models
use native_enum=False), so no CREATE TYPE statements are needed and the
same schema runs on PostgreSQL and SQLite.

Creation order (FK dependencies):
  users → refresh_tokens → groups → memberships → periods
        → meals, guest_meals, extra_expenses, shopping_items,
          account_transactions, payments → transaction_history

ON DELETE policies:
  *.group_id                         → CASCADE   (deleting a group removes everything in it)
  ledger *.period_id                 → CASCADE
  transaction_history.period_id      → SET NULL  (audit rows outlive their period)
  transaction_history.transaction_id → SET NULL  (audit rows outlive their transaction)
  groups.created_by, periods.created_by → SET NULL
  every other *.user_id              → RESTRICT
  refresh_tokens.user_id             → CASCADE
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration
branch_labels: tuple | None = None
depends_on: tuple | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def _fk(column: str, target: str, ondelete: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        column,
        sa.Integer(),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def _ledger_keys() -> list[sa.Column]:
    """group_id / period_id / user_id shared by every ledger table."""
    return [
        _fk("group_id", "groups.id", "CASCADE"),
        _fk("period_id", "periods.id", "CASCADE"),
        _fk("user_id", "users.id", "RESTRICT"),
    ]


def upgrade() -> None:

    # ── users ──────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("image", sa.String(500), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_users_name_nonempty"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    # ── refresh_tokens ─────────────────────────────────────────────────────
    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk("user_id", "users.id", "CASCADE"),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint("token_hash", name="uq_refresh_tokens_hash"),
    )
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])

    # ── groups ─────────────────────────────────────────────────────────────
    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("max_members", sa.Integer(), nullable=False, server_default="20"),
        sa.Column("member_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("period_mode", sa.String(20), nullable=False, server_default="custom"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _fk("created_by", "users.id", "SET NULL", nullable=True),
        _created_at(),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_groups_name_nonempty"),
        sa.CheckConstraint("max_members > 0", name="ck_groups_max_members_positive"),
        sa.CheckConstraint("member_count >= 0", name="ck_groups_member_count_nonneg"),
    )

    # ── memberships ────────────────────────────────────────────────────────
    op.create_table(
        "memberships",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk("user_id", "users.id", "RESTRICT"),
        _fk("group_id", "groups.id", "CASCADE"),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        sa.Column("is_banned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("user_id", "group_id", name="uq_memberships_user_group"),
    )
    op.create_index("ix_memberships_user_id", "memberships", ["user_id"])
    op.create_index("ix_memberships_group_id", "memberships", ["group_id"])

    # ── periods ────────────────────────────────────────────────────────────
    op.create_table(
        "periods",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk("group_id", "groups.id", "CASCADE"),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("opening_balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("closing_balance", sa.Numeric(12, 2), nullable=True),
        sa.Column("carry_forward", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        _fk("created_by", "users.id", "SET NULL", nullable=True),
        _created_at(),
        sa.UniqueConstraint("group_id", "name", name="uq_periods_group_name"),
        sa.CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="ck_periods_date_order",
        ),
    )
    op.create_index("ix_periods_group_id", "periods", ["group_id"])

    # At most one ACTIVE period per group, enforced by the store.
    op.create_index(
        "uq_periods_one_active_per_group",
        "periods",
        ["group_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    # ── meals ──────────────────────────────────────────────────────────────
    op.create_table(
        "meals",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_ledger_keys(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("meal_type", sa.String(20), nullable=False),
        _created_at(),
        sa.UniqueConstraint(
            "user_id", "group_id", "date", "meal_type",
            name="uq_meals_user_group_date_type",
        ),
    )
    op.create_index("ix_meals_group_period", "meals", ["group_id", "period_id"])
    op.create_index("ix_meals_user_id", "meals", ["user_id"])

    # ── guest_meals ────────────────────────────────────────────────────────
    op.create_table(
        "guest_meals",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_ledger_keys(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("meal_type", sa.String(20), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="1"),
        _created_at(),
        sa.CheckConstraint("count >= 1", name="ck_guest_meals_count_positive"),
    )
    op.create_index("ix_guest_meals_group_period", "guest_meals", ["group_id", "period_id"])
    op.create_index("ix_guest_meals_user_id", "guest_meals", ["user_id"])

    # ── extra_expenses ─────────────────────────────────────────────────────
    op.create_table(
        "extra_expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_ledger_keys(),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        _created_at(),
        sa.CheckConstraint("amount > 0", name="ck_extra_expenses_amount_positive"),
        sa.CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_extra_expenses_description_nonempty",
        ),
    )
    op.create_index("ix_extra_expenses_group_period", "extra_expenses", ["group_id", "period_id"])

    # ── shopping_items ─────────────────────────────────────────────────────
    op.create_table(
        "shopping_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_ledger_keys(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 2), nullable=False),
        sa.Column("unit", sa.String(30), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("purchased", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.CheckConstraint("quantity > 0", name="ck_shopping_items_quantity_positive"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_shopping_items_name_nonempty"),
    )
    op.create_index("ix_shopping_items_group_period", "shopping_items", ["group_id", "period_id"])

    # ── account_transactions ───────────────────────────────────────────────
    op.create_table(
        "account_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_ledger_keys(),
        _fk("target_user_id", "users.id", "RESTRICT"),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_account_transactions_group_period",
        "account_transactions",
        ["group_id", "period_id"],
    )
    op.create_index("ix_account_transactions_target", "account_transactions", ["target_user_id"])

    # ── payments ───────────────────────────────────────────────────────────
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_ledger_keys(),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("method", sa.String(20), nullable=False, server_default="cash"),
        sa.Column("status", sa.String(20), nullable=False, server_default="completed"),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        _created_at(),
        sa.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )
    op.create_index("ix_payments_group_period", "payments", ["group_id", "period_id"])

    # ── transaction_history ────────────────────────────────────────────────
    # Append-only audit log. Rows are never updated.
    op.create_table(
        "transaction_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk("group_id", "groups.id", "CASCADE"),
        _fk("period_id", "periods.id", "SET NULL", nullable=True),
        _fk("transaction_id", "account_transactions.id", "SET NULL", nullable=True),
        sa.Column("original_transaction_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("target_user_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("previous_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        _fk("changed_by", "users.id", "RESTRICT"),
        sa.Column(
            "changed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_transaction_history_group_id", "transaction_history", ["group_id"])
    op.create_index(
        "ix_transaction_history_transaction_id",
        "transaction_history",
        ["transaction_id"],
    )


def downgrade() -> None:
    """
    Drops everything created in upgrade(), in reverse dependency order.
    For local resets only; production fixes go forward in a new migration.
    """
    for table in (
            "transaction_history",
            "payments",
            "account_transactions",
            "shopping_items",
            "extra_expenses",
            "guest_meals",
            "meals",
            "periods",
            "memberships",
            "groups",
            "refresh_tokens",
            "users",
    ):
        op.drop_table(table)
