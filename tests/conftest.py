"""Pytest fixtures for testing."""
import os

# Settings are read when the app modules are imported, so the environment
# must be in place before any of them load.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-jwt-secret-not-for-production"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["REDIS_ENABLED"] = "false"

from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fakeredis import FakeAsyncRedis, FakeServer  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.passwords import hash_password  # noqa: E402
from core.redis import RedisClient, get_redis_client  # noqa: E402
from core.user_cache import UserCache, get_user_cache  # noqa: E402
from db.session import get_async_session  # noqa: E402
from models.base import Base  # noqa: E402
from models.user import User  # noqa: E402

TEST_PASSWORD = "secret123"


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """
    Create a fresh in-memory database for one test.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create an async session on the test database."""
    session_factory = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
async def redis_client() -> AsyncGenerator[RedisClient]:
    """
    Create a connected RedisClient backed by an isolated fakeredis server.

    fakeredis runs the Lua rate limit script, so script loading and evalsha
    behave as against a real server.
    """
    fake = FakeAsyncRedis(server=FakeServer())
    with patch("core.redis.Redis") as redis_cls:
        redis_cls.from_url.return_value = fake
        client = RedisClient(url="redis://test:6379")
        await client.connect()

    yield client

    await client.close()


@pytest.fixture
def user_cache(redis_client: RedisClient) -> UserCache:
    """User cache on the test Redis client."""
    return UserCache(redis_client, ttl=60)


@pytest.fixture
async def client(
    db_session: AsyncSession,
    redis_client: RedisClient,
    user_cache: UserCache,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database, Redis and cache overrides."""
    from api.main import app

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_redis_client] = lambda: redis_client
    app.dependency_overrides[get_user_cache] = lambda: user_cache

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory inserting a user row directly, bypassing the API and its cache."""
    counter = {"n": 0}

    async def _make_user(**overrides: Any) -> User:
        counter["n"] += 1
        fields: dict[str, Any] = {
            "name": f"User {counter['n']}",
            "email": f"user{counter['n']}@example.com",
            "password": hash_password(TEST_PASSWORD, rounds=4),
            "age": 30,
            "membership_status": None,
        }
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        await db_session.flush()
        return user

    return _make_user


async def _register_and_login(
    client: AsyncClient,
    email: str = "owner@example.com",
    password: str = TEST_PASSWORD,
) -> dict[str, str]:
    response = await client.post(
        "/api/register",
        json={"name": "Owner", "email": email, "password": password, "age": 40},
    )
    assert response.status_code == 201, response.text
    response = await client.post("/api/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
async def auth_headers(client: AsyncClient) -> dict[str, str]:
    """Bearer headers for a freshly registered user."""
    return await _register_and_login(client)


@pytest.fixture
def register_and_login() -> Callable[..., Awaitable[dict[str, str]]]:
    """Register a user through the API and return bearer auth headers for it."""
    return _register_and_login
