"""Pytest configuration and shared fixtures: fake clock, codec, session stores, manager, API client."""

import os
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

# Set config before authcore imports so settings/engine use it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./authcore-test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from authcore.core.tokens import TokenCodec
from authcore.db.session import create_session_maker, init_db
from authcore.services.session_store import InMemorySessionStore, SqlSessionStore
from authcore.services.token_lifecycle import TokenLifecycleManager

TEST_SECRET = "test-secret-key"
ISSUER = "authcore"
AUDIENCE = "authcore-clients"
ACCESS_TTL = timedelta(minutes=15)
REFRESH_TTL = timedelta(days=7)
RETENTION = timedelta(hours=24)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec(clock) -> TokenCodec:
    return TokenCodec(TEST_SECRET, TEST_SECRET, "HS256", issuer=ISSUER, audience=AUDIENCE, clock=clock)


def sqlite_engine(path):
    # generous busy timeout: concurrent writers wait on the SQLite file lock
    return create_async_engine(f"sqlite+aiosqlite:///{path}", connect_args={"timeout": 30})


@pytest_asyncio.fixture
async def sql_store(tmp_path, clock):
    """SqlSessionStore on a per-test SQLite file."""
    engine = sqlite_engine(tmp_path / "sessions.db")
    await init_db(engine)
    yield SqlSessionStore(create_session_maker(engine), clock)
    await engine.dispose()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request, tmp_path, clock):
    """Every store-level contract runs against both implementations."""
    if request.param == "memory":
        yield InMemorySessionStore(clock)
        return
    engine = sqlite_engine(tmp_path / "sessions.db")
    await init_db(engine)
    yield SqlSessionStore(create_session_maker(engine), clock)
    await engine.dispose()


def make_manager(codec, store, **overrides) -> TokenLifecycleManager:
    options = {
        "access_token_ttl": ACCESS_TTL,
        "refresh_token_ttl": REFRESH_TTL,
        "retention_window": RETENTION,
    }
    options.update(overrides)
    return TokenLifecycleManager(codec, store, **options)


@pytest.fixture
def manager(codec, store) -> TokenLifecycleManager:
    return make_manager(codec, store)


@pytest_asyncio.fixture
async def client(codec, clock):
    """AsyncClient against the app with an in-memory store (lifespan is not run)."""
    from authcore.main import app

    app.state.token_manager = make_manager(codec, InMemorySessionStore(clock))
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    del app.state.token_manager
