"""arq worker that purges expired token revocations.

Revocations are already ignored once past their expiry; this job only keeps
the table from growing.
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings

from finquest.auth.revocation import TokenRevocationStore
from finquest.config import get_settings
from finquest.container import build_revocation_store
from finquest.database import create_engine, create_session_factory
from finquest.redis_client import close_redis, create_redis

logger = logging.getLogger(__name__)


async def sweeper_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Build the revocation store on worker startup."""
    settings = get_settings()
    engine = create_engine(settings.database_url)
    redis_client = create_redis(settings.redis_url) if settings.revocation_backend == "redis" else None

    ctx["engine"] = engine
    ctx["redis_client"] = redis_client
    ctx["revocations"] = build_revocation_store(settings, create_session_factory(engine), redis_client)
    logger.info("Revocation sweeper started (backend=%s)", settings.revocation_backend)


async def sweeper_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    await close_redis(ctx.get("redis_client"))
    engine = ctx.get("engine")
    if engine is not None:
        await engine.dispose()
    logger.info("Revocation sweeper shut down")


async def sweep_revoked_tokens(ctx: dict) -> int:  # type: ignore[type-arg]
    """Delete revocation records whose token has expired."""
    store: TokenRevocationStore = ctx["revocations"]
    removed = await store.sweep_expired()
    if removed > 0:
        logger.info("Swept %d expired revocations", removed)
    return removed


class RevocationSweeperSettings:
    """arq worker settings for the revocation sweep."""

    functions = [sweep_revoked_tokens]
    cron_jobs = [
        cron(sweep_revoked_tokens, minute=get_settings().revocation_sweep_minutes, run_at_startup=True),
    ]
    on_startup = sweeper_startup
    on_shutdown = sweeper_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_jobs = 1
    job_timeout = 300
