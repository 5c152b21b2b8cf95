"""User provisioning and finance-profile reads."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from finquest.db.models import UserProfile

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from finquest.gamification.experience_ledger import ExperienceLedger
    from finquest.gamification.wallet_ledger import WalletLedger

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProfileTotals:
    total_savings: Decimal = Decimal(0)
    total_expenses: Decimal = Decimal(0)
    savings_goal: Decimal = Decimal(0)
    transaction_count: int = 0

    @property
    def savings_progress(self) -> int:
        """Percent of the savings goal reached, capped at 100."""
        if self.savings_goal <= 0:
            return 0
        return min(round(self.total_savings / self.savings_goal * 100), 100)


class ProfileReader:
    """Reads the finance totals maintained by the finance layer."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def open_profile(self, user_id: str) -> bool:
        async with self._session_factory() as db:
            db.add(UserProfile(user_id=user_id))
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                return False
        return True

    async def totals(self, user_id: str) -> ProfileTotals:
        """Finance totals for a user (zeros when no profile exists yet)."""
        async with self._session_factory() as db:
            result = await db.execute(select(UserProfile).where(UserProfile.user_id == user_id))
            profile = result.scalar_one_or_none()
        if profile is None:
            return ProfileTotals()
        return ProfileTotals(
            total_savings=Decimal(profile.total_savings),
            total_expenses=Decimal(profile.total_expenses),
            savings_goal=Decimal(profile.savings_goal),
            transaction_count=profile.transaction_count,
        )


async def provision_user(
    user_id: str,
    *,
    experience: ExperienceLedger,
    wallet: WalletLedger,
    profiles: ProfileReader,
) -> bool:
    """Create the level-1 progress, empty wallet and profile for a new user.

    Safe to call again: existing rows are left untouched. Returns True if any
    record was created.
    """
    created = [
        await experience.open_account(user_id),
        await wallet.open_account(user_id),
        await profiles.open_profile(user_id),
    ]
    if any(created):
        logger.info("user_provisioned", user_id=user_id)
    return any(created)
