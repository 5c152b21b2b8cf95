"""ORM models for the progression engine.

Each aggregate lives in its own table and is written through its owning
ledger only. Cross-table consistency is never enforced by a shared
transaction.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from finquest.db.base import Base, UTCDateTime

_BigId = BigInteger().with_variant(Integer, "sqlite")


# ---------------------------------------------------------------------------
# Progress (level / experience)
# ---------------------------------------------------------------------------


class UserProgress(Base):
    """Level and experience for one user. Written by ExperienceLedger only."""

    __tablename__ = "user_progress"
    __table_args__ = (
        CheckConstraint("level >= 1", name="ck_user_progress_level"),
        CheckConstraint("experience >= 0", name="ck_user_progress_experience"),
    )

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())


# ---------------------------------------------------------------------------
# Unlocks (achievement and badge sets)
# ---------------------------------------------------------------------------


class UserUnlock(Base):
    """One unlocked reward. The unique pair is the at-most-once guard."""

    __tablename__ = "user_unlocks"
    __table_args__ = (UniqueConstraint("user_id", "reward_id", name="uq_user_unlocks_user_reward"),)

    id: Mapped[int] = mapped_column(_BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_progress.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    reward_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reward_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------


class UserWallet(Base):
    """Coin balance for one user. Written by WalletLedger only."""

    __tablename__ = "user_wallets"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_user_wallets_balance"),
        CheckConstraint("balance = total_earned - total_spent", name="ck_user_wallets_totals"),
    )

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    total_earned: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    total_spent: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())


# ---------------------------------------------------------------------------
# Profile (finance totals, maintained by the finance layer)
# ---------------------------------------------------------------------------


class UserProfile(Base):
    """Finance totals read when building reward stats snapshots."""

    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    total_savings: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0, server_default="0")
    total_expenses: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0, server_default="0")
    savings_goal: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0, server_default="0")
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())


# ---------------------------------------------------------------------------
# Reward catalog
# ---------------------------------------------------------------------------


class RewardDefinitionRow(Base):
    """Achievement or badge definition (admin-writable, read-mostly)."""

    __tablename__ = "reward_definitions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(64), nullable=False, default="\U0001f3c5")
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    rarity: Mapped[str] = mapped_column(String(16), nullable=False, default="common")
    criteria_kind: Mapped[str] = mapped_column(String(32), nullable=False)
    criteria_threshold: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    criteria_description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    reward_coins: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reward_experience: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    is_limited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    available_from: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    available_until: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())


# ---------------------------------------------------------------------------
# Auth: revoked session tokens
# ---------------------------------------------------------------------------


class RevokedToken(Base):
    """Logout blacklist entry. Logically absent once expires_at has passed."""

    __tablename__ = "revoked_tokens"

    token_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())
