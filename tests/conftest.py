"""
Test infrastructure for the Conduit API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- SQLite only enforces foreign keys (and therefore ON DELETE CASCADE)
  when asked to, so every new connection turns the pragma on.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- The clock and signing key are overridden with a FrozenClock and a fixed
  key, so tokens are reproducible and expiry can be driven by the test.
- All tables are created fresh before each test and dropped after, giving
  each test a clean isolated state without needing transactions or truncation.
"""
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from conduit.auth import AuthToken, FrozenClock, StaticSigningKey
from conduit.database import Base, get_db
from conduit.dependencies import get_clock, get_signing_keys
from conduit.main import app
from conduit.middleware import install_query_counter

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_SIGNING_KEY = "test-signing-key"
TEST_NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine_test.sync_engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# Register the per-request SQL query counter on the test engine.
install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency overrides
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def clock() -> FrozenClock:
    """A clock shared by the app and the test; advance it to age tokens."""
    clock = FrozenClock(TEST_NOW)
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_signing_keys] = lambda: StaticSigningKey(TEST_SIGNING_KEY)
    yield clock
    app.dependency_overrides.pop(get_clock, None)
    app.dependency_overrides.pop(get_signing_keys, None)


@pytest.fixture
def auth(clock: FrozenClock) -> AuthToken:
    return AuthToken(clock, StaticSigningKey(TEST_SIGNING_KEY))


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that need to interact with the
    database directly (e.g. seeding data, asserting ORM state).
    """
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client(clock: FrozenClock) -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport,
    with the frozen clock and the test signing key in place.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

