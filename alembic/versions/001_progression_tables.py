"""Progression engine tables.

Creates user_progress, user_unlocks, user_wallets, user_profiles,
reward_definitions and revoked_tokens.

Revision ID: 001_progression_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_progression_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_TIMESTAMP = sa.DateTime(timezone=True)


def upgrade() -> None:
    # --- Progress ---
    op.create_table(
        "user_progress",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("experience", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", _TIMESTAMP, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", _TIMESTAMP, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("level >= 1", name="ck_user_progress_level"),
        sa.CheckConstraint("experience >= 0", name="ck_user_progress_experience"),
    )

    # --- Unlocks ---
    op.create_table(
        "user_unlocks",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(64),
            sa.ForeignKey("user_progress.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reward_id", sa.String(64), nullable=False),
        sa.Column("reward_kind", sa.String(16), nullable=False),
        sa.Column("unlocked_at", _TIMESTAMP, nullable=False),
        sa.UniqueConstraint("user_id", "reward_id", name="uq_user_unlocks_user_reward"),
    )
    op.create_index("ix_user_unlocks_user_id", "user_unlocks", ["user_id"])

    # --- Wallets ---
    op.create_table(
        "user_wallets",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("balance", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_earned", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_spent", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("created_at", _TIMESTAMP, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", _TIMESTAMP, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("balance >= 0", name="ck_user_wallets_balance"),
        sa.CheckConstraint("balance = total_earned - total_spent", name="ck_user_wallets_totals"),
    )

    # --- Profiles ---
    op.create_table(
        "user_profiles",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("total_savings", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_expenses", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("savings_goal", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("transaction_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", _TIMESTAMP, nullable=False, server_default=sa.func.now()),
    )

    # --- Reward catalog ---
    op.create_table(
        "reward_definitions",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("name", sa.String(128), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("icon", sa.String(64), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("rarity", sa.String(16), nullable=False),
        sa.Column("criteria_kind", sa.String(32), nullable=False),
        sa.Column("criteria_threshold", sa.Float(), nullable=False),
        sa.Column("criteria_description", sa.String(256), nullable=True),
        sa.Column("reward_coins", sa.Integer(), nullable=True),
        sa.Column("reward_experience", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_limited", sa.Boolean(), nullable=False),
        sa.Column("available_from", _TIMESTAMP, nullable=True),
        sa.Column("available_until", _TIMESTAMP, nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("created_at", _TIMESTAMP, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", _TIMESTAMP, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_reward_definitions_kind", "reward_definitions", ["kind"])
    op.create_index("ix_reward_definitions_is_active", "reward_definitions", ["is_active"])

    # --- Revoked tokens ---
    op.create_table(
        "revoked_tokens",
        sa.Column("token_hash", sa.String(64), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("expires_at", _TIMESTAMP, nullable=False),
        sa.Column("created_at", _TIMESTAMP, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_revoked_tokens_user_id", "revoked_tokens", ["user_id"])
    op.create_index("ix_revoked_tokens_expires_at", "revoked_tokens", ["expires_at"])


def downgrade() -> None:
    op.drop_table("revoked_tokens")
    op.drop_table("reward_definitions")
    op.drop_table("user_profiles")
    op.drop_table("user_wallets")
    op.drop_table("user_unlocks")
    op.drop_table("user_progress")
