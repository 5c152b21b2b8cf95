"""Reward coordinator: unlock-then-pay orchestration across the three ledgers.

There is no transaction spanning progress, wallet and unlocks. Ordering is
what keeps payouts at most once per (user, reward):

1. The unlock row is inserted and committed first. Only the caller that
   creates it goes on to pay.
2. Coins, then experience, are credited through their ledgers.
3. If a payout step fails the unlock stays. The reward counts as granted,
   the gap is logged as ``partial_payout`` and PartialPayoutFailure is
   raised. Rolling the unlock back would let a retry pay twice.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from finquest.gamification.catalog import RewardCatalog, RewardDefinition, RewardKind
from finquest.gamification.criteria import UserStatsSnapshot, evaluate
from finquest.gamification.errors import PartialPayoutFailure, RewardNotActive
from finquest.gamification.experience_ledger import ExperienceLedger
from finquest.gamification.progression import ExperienceGrant, level_bonus_coins
from finquest.gamification.unlock_registry import UnlockRegistry
from finquest.gamification.wallet_ledger import WalletLedger
from finquest.users.service import ProfileReader

logger = logging.getLogger(__name__)


class GrantStatus(str, Enum):
    GRANTED = "granted"
    ALREADY_UNLOCKED = "already_unlocked"


@dataclass(frozen=True)
class GrantResult:
    status: GrantStatus
    reward: RewardDefinition
    coins_awarded: int = 0
    experience_awarded: int = 0
    leveled_up: bool = False
    new_level: int | None = None

    @property
    def granted(self) -> bool:
        return self.status is GrantStatus.GRANTED


@dataclass(frozen=True)
class GrantError:
    """A reward whose grant raised before anything was committed for it."""

    reward_id: str
    error: str


@dataclass
class BulkGrantResult:
    granted: list[GrantResult] = field(default_factory=list)
    failures: list[PartialPayoutFailure] = field(default_factory=list)
    errors: list[GrantError] = field(default_factory=list)
    total_coins: int = 0
    total_experience: int = 0


@dataclass(frozen=True)
class ExperienceAward:
    grant: ExperienceGrant
    bonus_coins: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RewardCoordinator:
    """Grants reward bundles through the ledgers' public operations only."""

    def __init__(
        self,
        *,
        catalog: RewardCatalog,
        experience: ExperienceLedger,
        wallet: WalletLedger,
        unlocks: UnlockRegistry,
        profiles: ProfileReader,
        level_bonus_per_level: int = 10,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.catalog = catalog
        self.experience = experience
        self.wallet = wallet
        self.unlocks = unlocks
        self.profiles = profiles
        self._level_bonus_per_level = level_bonus_per_level
        self._clock = clock

    async def grant_if_eligible(self, user_id: str, reward_id: str) -> GrantResult:
        """Unlock a reward and pay it out, at most once per (user, reward).

        Raises:
            RewardNotFound: unknown reward id.
            RewardNotActive: reward is deactivated.
            UserNotFound: user has no progress record.
            PartialPayoutFailure: unlock committed, payout incomplete.
        """
        reward = await self.catalog.require(reward_id)
        if not reward.is_active:
            msg = f"Reward {reward_id} is not active"
            raise RewardNotActive(msg)
        return await self._grant(user_id, reward)

    async def _grant(self, user_id: str, reward: RewardDefinition) -> GrantResult:
        if not await self.unlocks.unlock(user_id, reward.id, reward.kind):
            return GrantResult(status=GrantStatus.ALREADY_UNLOCKED, reward=reward)

        payout = reward.payout()
        coins_applied = 0
        experience_applied = 0
        grant: ExperienceGrant | None = None
        try:
            if payout.coins > 0:
                await self.wallet.add_coins(
                    user_id, payout.coins, reason=f"{reward.kind.value} reward: {reward.name}"
                )
                coins_applied = payout.coins
            if payout.experience > 0:
                grant = await self.experience.add_experience(user_id, payout.experience)
                experience_applied = payout.experience
        except Exception as exc:
            logger.error(
                "partial_payout user=%s reward=%s coins_applied=%d/%d experience_applied=%d/%d",
                user_id, reward.id, coins_applied, payout.coins,
                experience_applied, payout.experience,
                exc_info=True,
            )
            raise PartialPayoutFailure(
                user_id=user_id,
                reward_id=reward.id,
                coins_applied=coins_applied,
                experience_applied=experience_applied,
                cause=exc,
            ) from exc

        logger.info(
            "User %s earned %s %s (+%d coins, +%d XP)",
            user_id, reward.kind.value, reward.name, coins_applied, experience_applied,
        )
        return GrantResult(
            status=GrantStatus.GRANTED,
            reward=reward,
            coins_awarded=coins_applied,
            experience_awarded=experience_applied,
            leveled_up=grant.leveled_up if grant else False,
            new_level=grant.new_level if grant else None,
        )

    async def snapshot(self, user_id: str) -> UserStatsSnapshot:
        """Current stats as seen by the criteria evaluator."""
        progress = await self.experience.get(user_id)
        wallet = await self.wallet.get(user_id)
        achievements = await self.unlocks.count(user_id, RewardKind.ACHIEVEMENT)
        totals = await self.profiles.totals(user_id)
        return UserStatsSnapshot(
            achievement_count=achievements,
            level=progress.level,
            coins_earned=wallet.total_earned,
            total_savings=float(totals.total_savings),
            streak_days=0,  # Streak tracking is not implemented
            transaction_count=totals.transaction_count,
            total_amount=float(totals.total_savings + totals.total_expenses),
        )

    async def check_and_grant_all(self, user_id: str) -> BulkGrantResult:
        """Grant every reward the user's current stats satisfy.

        A partial payout or any other error on one reward is recorded and does
        not stop the rest. Grants already committed in this pass are always
        reported.
        """
        stats = await self.snapshot(user_id)
        catalog = await self.catalog.find(active_only=True)
        held = await self.unlocks.unlocked_ids(user_id)
        candidates = [r for r in evaluate(catalog, stats, self._clock()) if r.id not in held]

        outcome = BulkGrantResult()
        for reward in candidates:
            try:
                result = await self._grant(user_id, reward)
            except PartialPayoutFailure as failure:
                outcome.failures.append(failure)
                outcome.total_coins += failure.coins_applied
                outcome.total_experience += failure.experience_applied
                continue
            except Exception as exc:
                logger.exception("Reward check for %s failed on %s", user_id, reward.id)
                outcome.errors.append(GrantError(reward_id=reward.id, error=str(exc)))
                continue
            if result.granted:
                outcome.granted.append(result)
                outcome.total_coins += result.coins_awarded
                outcome.total_experience += result.experience_awarded

        if outcome.granted or outcome.failures or outcome.errors:
            logger.info(
                "Reward check for %s: %d granted, %d partial, %d failed (+%d coins, +%d XP)",
                user_id, len(outcome.granted), len(outcome.failures), len(outcome.errors),
                outcome.total_coins, outcome.total_experience,
            )
        return outcome

    async def award_experience(self, user_id: str, amount: int) -> ExperienceAward:
        """Manual experience grant; each level crossed pays `level * bonus` coins."""
        grant = await self.experience.add_experience(user_id, amount)
        bonus = 0
        if grant.leveled_up and self._level_bonus_per_level > 0:
            first_level = grant.new_level - grant.levels_gained
            bonus = level_bonus_coins(first_level, grant.new_level, self._level_bonus_per_level)
            await self.wallet.add_coins(user_id, bonus, reason=f"Level {grant.new_level} reward")
            logger.info("User %s reached level %d, awarded %d coins", user_id, grant.new_level, bonus)
        return ExperienceAward(grant=grant, bonus_coins=bonus)
