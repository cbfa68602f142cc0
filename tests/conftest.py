"""
Pytest fixtures for Placebook tests.

Every test gets its own file-backed SQLite database (aiosqlite) under
tmp_path, so app connections and fixture connections share one DB.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from placebook.config import Settings
from placebook.context import AppContext, build_context
from placebook.database import close_db, init_db
from placebook.kernel.identity.identity_service import IdentityService
from placebook.kernel.identity.jwt import JWTManager
from placebook.kernel.identity.password import PasswordHasher
from placebook.kernel.store import SqlCredentialStore
from placebook.main import create_app

TEST_SECRET = "test-secret-key-for-testing-only"


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file, fast hashing, no rate limit."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        secret_key=TEST_SECRET,
        bcrypt_rounds=4,
        rate_limit_enabled=False,
        environment="test",
    )


@pytest_asyncio.fixture
async def context(settings: Settings) -> AsyncGenerator[AppContext, None]:
    ctx = build_context(settings)
    await init_db(ctx.engine)
    yield ctx
    await close_db(ctx.engine)


@pytest_asyncio.fixture
async def db_session(context: AppContext) -> AsyncGenerator[AsyncSession, None]:
    async with context.session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def store(db_session: AsyncSession) -> SqlCredentialStore:
    return SqlCredentialStore(db_session)


@pytest.fixture
def identity(context: AppContext, db_session: AsyncSession) -> IdentityService:
    return context.identity_service(db_session)


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def jwt_manager() -> JWTManager:
    """Create a JWT manager for tests."""
    return JWTManager(secret_key=TEST_SECRET, algorithm="HS256", token_expire_days=7)


@pytest_asyncio.fixture
async def app(settings: Settings):
    application = create_app(settings)
    await init_db(application.state.context.engine)
    yield application
    await close_db(application.state.context.engine)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async client over the ASGI app (lifespan not run; tables made by ``app``)."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
