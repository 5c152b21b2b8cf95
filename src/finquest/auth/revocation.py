"""Revoked session tokens (logout blacklist).

A revoked token is stored by SHA-256 fingerprint until the expiry claimed
by the token itself. Records past that instant are treated as absent
whether or not they have been physically removed yet.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Protocol

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from finquest.auth.errors import AlreadyRevoked
from finquest.auth.jwt import hash_token, read_expiry
from finquest.db.models import RevokedToken

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenRevocationStore(Protocol):
    async def revoke(self, token: str, user_id: str) -> datetime: ...

    async def is_revoked(self, token: str) -> bool: ...

    async def sweep_expired(self) -> int: ...


class SqlRevocationStore:
    """Revocations in the `revoked_tokens` table, swept periodically."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def revoke(self, token: str, user_id: str) -> datetime:
        """Blacklist a token until its own expiry. Returns that expiry.

        Raises:
            MalformedToken: token has no readable exp claim.
            AlreadyRevoked: a live revocation for this token exists.
        """
        expires_at = read_expiry(token)
        token_hash = hash_token(token)
        now = self._clock()

        async with self._session_factory() as db:
            # A stale record for the same token is logically absent; replace it
            await db.execute(
                delete(RevokedToken).where(
                    RevokedToken.token_hash == token_hash,
                    RevokedToken.expires_at <= now,
                )
            )
            db.add(RevokedToken(
                token_hash=token_hash,
                user_id=user_id,
                expires_at=expires_at,
                created_at=now,
            ))
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                msg = "Token is already invalidated"
                raise AlreadyRevoked(msg) from e

        logger.info("token_revoked", user_id=user_id, expires_at=expires_at.isoformat())
        return expires_at

    async def is_revoked(self, token: str) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                select(RevokedToken.token_hash).where(
                    RevokedToken.token_hash == hash_token(token),
                    RevokedToken.expires_at > self._clock(),
                )
            )
            return result.first() is not None

    async def sweep_expired(self) -> int:
        """Delete records whose expiry has passed. Returns the number removed."""
        async with self._session_factory() as db:
            result = await db.execute(
                delete(RevokedToken).where(RevokedToken.expires_at < self._clock())
            )
            await db.commit()
        removed = result.rowcount or 0
        if removed:
            logger.info("revocations_swept", removed=removed)
        return removed


class RedisRevocationStore:
    """Revocations as Redis keys that expire with the token itself."""

    def __init__(
        self,
        redis: Redis,
        prefix: str = "auth:revoked:",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._redis = redis
        self._prefix = prefix
        self._clock = clock

    def _key(self, token: str) -> str:
        return f"{self._prefix}{hash_token(token)}"

    async def revoke(self, token: str, user_id: str) -> datetime:
        expires_at = read_expiry(token)
        ttl_ms = int((expires_at - self._clock()).total_seconds() * 1000)
        if ttl_ms <= 0:
            # Already past its natural expiry; nothing left to guard
            logger.info("token_revoke_skipped_expired", user_id=user_id)
            return expires_at

        stored = await self._redis.set(self._key(token), user_id, px=ttl_ms, nx=True)
        if not stored:
            msg = "Token is already invalidated"
            raise AlreadyRevoked(msg)
        logger.info("token_revoked", user_id=user_id, expires_at=expires_at.isoformat())
        return expires_at

    async def is_revoked(self, token: str) -> bool:
        return bool(await self._redis.exists(self._key(token)))

    async def sweep_expired(self) -> int:
        """Redis drops expired keys itself."""
        return 0
