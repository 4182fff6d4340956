import os

# Must be set before the app (and its engine) is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from app.main import app
from app.database import Base, get_db
from app.schemas.user import UserCreate
from app.services.notifications import ChannelRegistry, get_channels
from app.services.users import create_user


@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite file per test, one connection per session like the real pool."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def channels() -> ChannelRegistry:
    return ChannelRegistry(send_timeout=0.5)


@pytest.fixture
async def client(session_factory, channels):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_channels] = lambda: channels
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    async def _make(username: str, password: str = "secret-pass"):
        async with session_factory() as session:
            return await create_user(
                session,
                UserCreate(username=username, email=f"{username}@example.com", password=password),
            )
    return _make
