"""Shared test fixtures.

Every test gets its own SQLite database file, so no cleanup between tests
is needed.
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from finquest.config import Settings
from finquest.container import Services, build_services
from finquest.database import create_engine, create_session_factory
from finquest.db.base import Base
from finquest.main import create_app
from finquest.users.service import provision_user

TEST_JWT_SECRET = "test-secret-with-enough-bytes-for-hs256"
TEST_USER_ID = "user-1"


def make_token(
    sub: str | None = TEST_USER_ID,
    *,
    expires_in: int = 3600,
    secret: str = TEST_JWT_SECRET,
    **claims: Any,
) -> str:
    """Mint an HS256 token the way the identity service would."""
    payload: dict[str, Any] = {"iat": int(time.time()), "exp": int(time.time()) + expires_in, **claims}
    if sub is not None:
        payload["sub"] = sub
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'finquest.db'}",
        jwt_algorithm="HS256",
        jwt_secret=TEST_JWT_SECRET,
        jwt_issuer=None,
        revocation_backend="database",
        seed_catalog_on_startup=False,
        log_format="console",
    )


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def services(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> Services:
    return build_services(settings, session_factory)


@pytest_asyncio.fixture
async def user_id(services: Services) -> str:
    """A provisioned user: level 1, empty wallet, empty profile."""
    await provision_user(
        TEST_USER_ID,
        experience=services.experience,
        wallet=services.wallet,
        profiles=services.profiles,
    )
    return TEST_USER_ID


@pytest_asyncio.fixture
async def client(settings: Settings, services: Services) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against an app wired to the per-test services."""
    app = create_app(settings)
    app.state.services = services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient) -> AsyncClient:
    """Client carrying a valid bearer token for TEST_USER_ID."""
    client.headers.update(auth_header(make_token()))
    return client


@pytest_asyncio.fixture
async def admin_client(client: AsyncClient) -> AsyncClient:
    client.headers.update(auth_header(make_token("admin-1", role="admin")))
    return client
