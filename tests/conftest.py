"""Shared pytest fixtures for API and service tests against in-memory SQLite."""

import logging
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shortlink.config import Settings
from shortlink.database import Base, get_db
from shortlink.dependencies import ServiceManager, get_service_manager
from shortlink.main import app
from shortlink.models import ClickEvent, UrlRecord

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_API_KEY = "test-api-key"
TEST_BASE_URL = "http://sho.rt"
TEST_SEED = 1234


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL=TEST_DATABASE_URL,
        API_KEY=TEST_API_KEY,
        BASE_URL=TEST_BASE_URL,
        SHORT_ID_SEED=TEST_SEED,
    )


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("shortlink.tests")


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    test_engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def service_manager(settings: Settings) -> AsyncGenerator[ServiceManager, None]:
    manager = ServiceManager()
    await manager.cleanup()
    await manager.initialize(settings)
    yield manager
    await manager.cleanup()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, service_manager: ServiceManager) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_service_manager() -> ServiceManager:
        return service_manager

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_service_manager] = override_get_service_manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"x-api-key": TEST_API_KEY}


@pytest.fixture
def seed_clicks(db_session: AsyncSession):
    """Insert click events (and optionally the URL row) with explicit timestamps."""

    async def _seed(short_id: str, clicks: list[dict], original_url: str | None = None) -> None:
        if original_url is not None:
            db_session.add(UrlRecord(id=short_id, original_url=original_url))
        db_session.add_all([ClickEvent(short_id=short_id, **click) for click in clicks])
        await db_session.commit()

    return _seed
