"""Unlock registry: which achievements and badges each user holds."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finquest.db.models import UserProgress, UserUnlock
from finquest.gamification.catalog import RewardKind
from finquest.gamification.errors import UserNotFound

logger = logging.getLogger(__name__)


class UnlockRegistry:
    """Owns the per-user unlock sets.

    `unlock` is idempotent: the (user_id, reward_id) unique constraint decides
    which concurrent caller performs the fresh unlock, and every other caller
    observes False.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def has_unlocked(self, user_id: str, reward_id: str) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                select(UserUnlock.id).where(
                    UserUnlock.user_id == user_id,
                    UserUnlock.reward_id == reward_id,
                )
            )
            return result.first() is not None

    async def unlock(self, user_id: str, reward_id: str, kind: RewardKind) -> bool:
        """Record the unlock. Returns True only for the call that created it.

        The insert is committed before returning, so a True result is durable
        before any payout starts.
        """
        async with self._session_factory() as db:
            exists = await db.scalar(select(UserProgress.user_id).where(UserProgress.user_id == user_id))
            if exists is None:
                msg = f"No progress record for user {user_id}"
                raise UserNotFound(msg)

            db.add(UserUnlock(
                user_id=user_id,
                reward_id=reward_id,
                reward_kind=kind.value,
                unlocked_at=datetime.now(timezone.utc),
            ))
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                return False  # Lost the race or already unlocked

        logger.info("User %s unlocked %s %s", user_id, kind.value, reward_id)
        return True

    async def unlocked_ids(self, user_id: str, kind: RewardKind | None = None) -> set[str]:
        """Ids of every reward the user holds, optionally of one kind."""
        query = select(UserUnlock.reward_id).where(UserUnlock.user_id == user_id)
        if kind is not None:
            query = query.where(UserUnlock.reward_kind == kind.value)
        async with self._session_factory() as db:
            result = await db.execute(query)
            return set(result.scalars())

    async def count(self, user_id: str, kind: RewardKind) -> int:
        async with self._session_factory() as db:
            total = await db.scalar(
                select(func.count()).select_from(UserUnlock).where(
                    UserUnlock.user_id == user_id,
                    UserUnlock.reward_kind == kind.value,
                )
            )
            return int(total or 0)
