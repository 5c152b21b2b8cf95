"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from finquest.auth.router import router as auth_router
from finquest.config import Settings, get_settings
from finquest.container import build_services
from finquest.database import create_engine, create_session_factory
from finquest.gamification.admin_router import router as admin_router
from finquest.gamification.router import router as gamification_router
from finquest.gamification.seed import seed_catalog
from finquest.health.router import router as health_router
from finquest.middleware import setup_middleware
from finquest.redis_client import close_redis, create_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    if getattr(app.state, "services", None) is not None:
        # Services injected by the caller; the caller owns their lifecycle
        yield
        return

    settings: Settings = app.state.settings
    engine = create_engine(settings.database_url)
    redis = create_redis(settings.redis_url) if settings.revocation_backend == "redis" else None
    services = build_services(settings, create_session_factory(engine), redis)
    app.state.services = services

    if settings.seed_catalog_on_startup:
        try:
            await seed_catalog(services.catalog)
        except SQLAlchemyError:
            logger.warning("Reward catalog seeding failed (tables may not exist yet)", exc_info=True)

    yield

    app.state.services = None
    await close_redis(redis)
    await engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="FinQuest Progression API",
        description="Experience, coins and rewards for the FinQuest personal finance app",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = None

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(gamification_router)
    app.include_router(admin_router)

    return app


app = create_app()
