"""Reward catalog: achievement and badge definitions.

Definitions are handed out as frozen values so the evaluator and the
coordinator never hold a live ORM row.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finquest.db.models import RewardDefinitionRow
from finquest.gamification.errors import RewardConflict, RewardNotFound

logger = logging.getLogger(__name__)


class RewardKind(str, Enum):
    ACHIEVEMENT = "achievement"
    BADGE = "badge"


class Rarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"
    UNIQUE = "unique"

    @property
    def rank(self) -> int:
        return list(Rarity).index(self)

    @property
    def color(self) -> str:
        return RARITY_COLORS[self]


@dataclass(frozen=True)
class Payout:
    coins: int
    experience: int


# Fixed badge payout schedule
BADGE_PAYOUTS: dict[Rarity, Payout] = {
    Rarity.COMMON: Payout(coins=10, experience=20),
    Rarity.RARE: Payout(coins=25, experience=50),
    Rarity.EPIC: Payout(coins=50, experience=100),
    Rarity.LEGENDARY: Payout(coins=100, experience=200),
    Rarity.UNIQUE: Payout(coins=250, experience=500),
}

RARITY_COLORS: dict[Rarity, str] = {
    Rarity.COMMON: "#808080",
    Rarity.RARE: "#0070dd",
    Rarity.EPIC: "#a335ee",
    Rarity.LEGENDARY: "#ff8000",
    Rarity.UNIQUE: "#e6cc80",
}


@dataclass(frozen=True)
class RewardDefinition:
    """An achievement or badge with its unlock criteria and payout."""

    id: str
    kind: RewardKind
    name: str
    description: str
    category: str
    criteria_kind: str
    criteria_threshold: float
    rarity: Rarity = Rarity.COMMON
    criteria_description: str | None = None
    icon: str = "\U0001f3c5"
    reward_coins: int | None = None
    reward_experience: int | None = None
    is_active: bool = True
    is_limited: bool = False
    available_from: datetime | None = None
    available_until: datetime | None = None
    sort_order: int = 0

    def is_available(self, now: datetime) -> bool:
        """Active and inside the availability window (window only binds limited badges)."""
        if not self.is_active:
            return False
        if not self.is_limited:
            return True
        if self.available_from is not None and now < self.available_from:
            return False
        if self.available_until is not None and now > self.available_until:
            return False
        return True

    def payout(self) -> Payout:
        """Coins and experience paid on a fresh unlock."""
        if self.kind is RewardKind.ACHIEVEMENT:
            return Payout(coins=self.reward_coins or 0, experience=self.reward_experience or 0)
        return BADGE_PAYOUTS[self.rarity]

    @classmethod
    def from_row(cls, row: RewardDefinitionRow) -> RewardDefinition:
        return cls(
            id=row.id,
            kind=RewardKind(row.kind),
            name=row.name,
            description=row.description,
            category=row.category,
            criteria_kind=row.criteria_kind,
            criteria_threshold=row.criteria_threshold,
            rarity=Rarity(row.rarity),
            criteria_description=row.criteria_description,
            icon=row.icon,
            reward_coins=row.reward_coins,
            reward_experience=row.reward_experience,
            is_active=row.is_active,
            # Achievements have no limited-availability mode
            is_limited=row.is_limited and row.kind == RewardKind.BADGE.value,
            available_from=row.available_from,
            available_until=row.available_until,
            sort_order=row.sort_order,
        )

    def to_columns(self) -> dict[str, Any]:
        values = asdict(self)
        values["kind"] = self.kind.value
        values["rarity"] = self.rarity.value
        return values


@dataclass(frozen=True)
class CatalogStats:
    total: int
    active: int
    by_category: dict[str, int]
    by_rarity: dict[str, int]


_MUTABLE_FIELDS = {f.name for f in fields(RewardDefinition)} - {"id", "kind"}


class RewardCatalog:
    """Read-mostly store of reward definitions with admin CRUD."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, reward_id: str) -> RewardDefinition | None:
        async with self._session_factory() as db:
            row = await db.get(RewardDefinitionRow, reward_id)
            return RewardDefinition.from_row(row) if row else None

    async def require(self, reward_id: str) -> RewardDefinition:
        reward = await self.get(reward_id)
        if reward is None:
            msg = f"Reward not found: {reward_id}"
            raise RewardNotFound(msg)
        return reward

    async def find(
        self,
        *,
        kind: RewardKind | None = None,
        active_only: bool = False,
    ) -> list[RewardDefinition]:
        query = select(RewardDefinitionRow).order_by(
            RewardDefinitionRow.sort_order, RewardDefinitionRow.name
        )
        if kind is not None:
            query = query.where(RewardDefinitionRow.kind == kind.value)
        if active_only:
            query = query.where(RewardDefinitionRow.is_active.is_(True))
        async with self._session_factory() as db:
            result = await db.execute(query)
            return [RewardDefinition.from_row(row) for row in result.scalars()]

    async def list_available(
        self,
        now: datetime | None = None,
        kind: RewardKind | None = None,
    ) -> list[RewardDefinition]:
        """Active definitions whose availability window contains `now`."""
        now = now or datetime.now(timezone.utc)
        return [r for r in await self.find(kind=kind, active_only=True) if r.is_available(now)]

    async def create(self, reward: RewardDefinition) -> RewardDefinition:
        async with self._session_factory() as db:
            row = RewardDefinitionRow(**reward.to_columns())
            db.add(row)
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                msg = f"Reward with id '{reward.id}' or name '{reward.name}' already exists"
                raise RewardConflict(msg) from e
            await db.refresh(row)
            created = RewardDefinition.from_row(row)
        logger.info("New %s created: %s (%s)", created.kind.value, created.name, created.rarity.value)
        return created

    async def update(self, reward_id: str, changes: dict[str, Any]) -> RewardDefinition:
        unknown = set(changes) - _MUTABLE_FIELDS
        if unknown:
            msg = f"Cannot update fields: {sorted(unknown)}"
            raise ValueError(msg)

        async with self._session_factory() as db:
            row = await db.get(RewardDefinitionRow, reward_id)
            if row is None:
                msg = f"Reward not found: {reward_id}"
                raise RewardNotFound(msg)
            for name, value in changes.items():
                setattr(row, name, value.value if isinstance(value, Enum) else value)
            row.updated_at = datetime.now(timezone.utc)
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                msg = f"Reward name '{changes.get('name')}' already exists"
                raise RewardConflict(msg) from e
            await db.refresh(row)
            updated = RewardDefinition.from_row(row)

        logger.info("Reward updated: %s", updated.name)
        return updated

    async def set_active(self, reward_id: str, active: bool) -> RewardDefinition:
        return await self.update(reward_id, {"is_active": active})

    async def delete(self, reward_id: str) -> None:
        """Remove a definition. Existing unlocks of it are kept."""
        async with self._session_factory() as db:
            result = await db.execute(
                delete(RewardDefinitionRow).where(RewardDefinitionRow.id == reward_id)
            )
            if result.rowcount != 1:
                await db.rollback()
                msg = f"Reward not found: {reward_id}"
                raise RewardNotFound(msg)
            await db.commit()
        logger.info("Reward deleted: %s", reward_id)

    async def stats(self) -> CatalogStats:
        rewards = await self.find()
        by_category: dict[str, int] = {}
        by_rarity: dict[str, int] = {}
        for reward in rewards:
            by_category[reward.category] = by_category.get(reward.category, 0) + 1
            by_rarity[reward.rarity.value] = by_rarity.get(reward.rarity.value, 0) + 1
        return CatalogStats(
            total=len(rewards),
            active=sum(1 for r in rewards if r.is_active),
            by_category=by_category,
            by_rarity=by_rarity,
        )

    async def seed(self, definitions: list[RewardDefinition]) -> int:
        """Insert any missing definitions (idempotent). Returns how many were added."""
        added = 0
        async with self._session_factory() as db:
            existing = set((await db.execute(select(RewardDefinitionRow.id))).scalars())
            for reward in definitions:
                if reward.id in existing:
                    continue
                db.add(RewardDefinitionRow(**reward.to_columns()))
                added += 1
            await db.commit()
        return added
