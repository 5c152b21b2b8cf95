"""Experience ledger: level, experience and level-up persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finquest.db.models import UserProgress
from finquest.gamification.errors import ConcurrentUpdate, UserNotFound
from finquest.gamification.progression import (
    ExperienceGrant,
    ProgressState,
    apply_experience,
    require_positive,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    user_id: str
    level: int
    experience: int


class ExperienceLedger:
    """Owns UserProgress level/experience.

    Writes are compare-and-swap on the row version, so concurrent grants for
    the same user serialize in the database rather than in this process.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_attempts: int = 5,
    ) -> None:
        self._session_factory = session_factory
        self._max_attempts = max_attempts

    async def open_account(self, user_id: str) -> bool:
        """Create the level-1 progress row. Returns False if it already exists."""
        async with self._session_factory() as db:
            db.add(UserProgress(user_id=user_id, level=1, experience=0, version=0))
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                return False
        return True

    async def _load(self, db: AsyncSession, user_id: str) -> ProgressState:
        result = await db.execute(
            select(UserProgress.level, UserProgress.experience, UserProgress.version).where(
                UserProgress.user_id == user_id
            )
        )
        row = result.one_or_none()
        if row is None:
            msg = f"No progress record for user {user_id}"
            raise UserNotFound(msg)
        return ProgressState(level=row.level, experience=row.experience, version=row.version)

    async def get(self, user_id: str) -> ProgressState:
        """Current level/experience for a user."""
        async with self._session_factory() as db:
            return await self._load(db, user_id)

    async def add_experience(self, user_id: str, amount: int) -> ExperienceGrant:
        """Grant experience, leveling up as many times as the amount covers.

        Raises:
            InvalidAmount: amount <= 0 (checked before any read).
            UserNotFound: no progress record.
            ConcurrentUpdate: every attempt lost the version race.
        """
        require_positive(amount, "Experience")

        for _attempt in range(self._max_attempts):
            async with self._session_factory() as db:
                state = await self._load(db, user_id)
                new_state, grant = apply_experience(state, amount)
                result = await db.execute(
                    update(UserProgress)
                    .where(
                        UserProgress.user_id == user_id,
                        UserProgress.version == state.version,
                    )
                    .values(
                        level=new_state.level,
                        experience=new_state.experience,
                        version=new_state.version,
                        updated_at=datetime.now(timezone.utc),
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    await db.commit()
                    if grant.leveled_up:
                        logger.info(
                            "User %s leveled up %d -> %d (+%d XP)",
                            user_id, state.level, grant.new_level, amount,
                        )
                    return grant
                await db.rollback()

        logger.warning("Experience grant for %s lost %d version races", user_id, self._max_attempts)
        msg = f"Progress for user {user_id} is being updated concurrently"
        raise ConcurrentUpdate(msg)

    async def leaderboard(self, limit: int = 10, offset: int = 0) -> list[LeaderboardEntry]:
        """Top users by level, then experience. Tied users share a rank, as in `rank()`."""
        ranked = select(
            UserProgress.user_id,
            UserProgress.level,
            UserProgress.experience,
            func.rank()
            .over(order_by=(UserProgress.level.desc(), UserProgress.experience.desc()))
            .label("rank"),
        ).subquery()
        async with self._session_factory() as db:
            result = await db.execute(
                select(ranked)
                .order_by(ranked.c.rank, ranked.c.user_id)
                .limit(limit)
                .offset(offset)
            )
            return [
                LeaderboardEntry(rank=r.rank, user_id=r.user_id, level=r.level, experience=r.experience)
                for r in result.all()
            ]

    async def rank(self, user_id: str) -> int:
        """1-based leaderboard position (ties share a rank)."""
        async with self._session_factory() as db:
            state = await self._load(db, user_id)
            better = await db.scalar(
                select(func.count()).select_from(UserProgress).where(
                    or_(
                        UserProgress.level > state.level,
                        (UserProgress.level == state.level)
                        & (UserProgress.experience > state.experience),
                    )
                )
            )
            return int(better or 0) + 1
