"""Process-wide service graph, built once at startup."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from finquest.auth.guard import SessionGuard
from finquest.auth.jwt import TokenVerifier
from finquest.auth.revocation import RedisRevocationStore, SqlRevocationStore, TokenRevocationStore
from finquest.config import Settings
from finquest.gamification.catalog import RewardCatalog
from finquest.gamification.coordinator import RewardCoordinator
from finquest.gamification.experience_ledger import ExperienceLedger
from finquest.gamification.unlock_registry import UnlockRegistry
from finquest.gamification.wallet_ledger import WalletLedger
from finquest.users.service import ProfileReader

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


@dataclass
class Services:
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    catalog: RewardCatalog
    experience: ExperienceLedger
    wallet: WalletLedger
    unlocks: UnlockRegistry
    profiles: ProfileReader
    coordinator: RewardCoordinator
    revocations: TokenRevocationStore
    guard: SessionGuard
    redis: Redis | None = None


def build_revocation_store(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    redis: Redis | None,
) -> TokenRevocationStore:
    if settings.revocation_backend == "redis":
        if redis is None:
            msg = "revocation_backend=redis requires a Redis client"
            raise ValueError(msg)
        return RedisRevocationStore(redis, prefix=settings.revocation_redis_prefix)
    if settings.revocation_backend == "database":
        return SqlRevocationStore(session_factory)
    msg = f"Unknown revocation backend: {settings.revocation_backend}"
    raise ValueError(msg)


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    redis: Redis | None = None,
) -> Services:
    """Wire ledgers, coordinator and session guard around one session factory."""
    catalog = RewardCatalog(session_factory)
    experience = ExperienceLedger(session_factory, max_attempts=settings.ledger_max_cas_attempts)
    wallet = WalletLedger(session_factory)
    unlocks = UnlockRegistry(session_factory)
    profiles = ProfileReader(session_factory)
    coordinator = RewardCoordinator(
        catalog=catalog,
        experience=experience,
        wallet=wallet,
        unlocks=unlocks,
        profiles=profiles,
        level_bonus_per_level=settings.level_up_bonus_coins_per_level,
    )
    revocations = build_revocation_store(settings, session_factory, redis)
    return Services(
        settings=settings,
        session_factory=session_factory,
        catalog=catalog,
        experience=experience,
        wallet=wallet,
        unlocks=unlocks,
        profiles=profiles,
        coordinator=coordinator,
        revocations=revocations,
        guard=SessionGuard(revocations, TokenVerifier(settings)),
        redis=redis,
    )
