"""Shared test configuration and fixtures.

Each test gets a fresh in-memory SQLite database (aiosqlite, foreign keys on)
so cascades and unique constraints behave as they do on PostgreSQL. Set
``TEST_DATABASE_URL`` to run against another database instead.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from datetime import date, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

import stayfinder.models  # noqa: F401
from stayfinder.auth.jwt import create_token_pair
from stayfinder.auth.passwords import hash_password
from stayfinder.database import Base, get_db
from stayfinder.main import app
from stayfinder.models.booking import Booking
from stayfinder.models.property import Property
from stayfinder.models.user import User
from stayfinder.ratelimit import limiter
from stayfinder.services.booking_service import utc_today

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
TEST_PASSWORD = "testpass123"


def _make_engine():
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine
    return create_async_engine(TEST_DATABASE_URL, pool_pre_ping=True)


# ---------------------------------------------------------------------------
# Per-test database and client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session on a freshly created schema, dropped after the test."""
    engine = _make_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = AsyncSession(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to use the test DB session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    limiter.reset()
    yield
    limiter.reset()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def auth_header(user: User) -> dict[str, str]:
    tokens = create_token_pair(str(user.id))
    return {"Authorization": f"Bearer {tokens['access_token']}"}


async def make_user(db: AsyncSession, role: str = "user", **overrides) -> User:
    """Create a user directly in the DB (password ``TEST_PASSWORD``)."""
    unique = uuid.uuid4().hex[:8]
    values = {
        "email": f"{role}-{unique}@test.com",
        "hashed_password": hash_password(TEST_PASSWORD),
        "name": f"Test {role.title()}",
        "role": role,
        "is_active": True,
    }
    values.update(overrides)
    user = User(**values)
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user


async def make_property(db: AsyncSession, host: User, **overrides) -> Property:
    """Create an approved, available nightly listing owned by ``host``."""
    values = {
        "host_id": host.id,
        "title": "Seaside Test Cottage",
        "description": "A quiet cottage by the sea used in automated tests.",
        "property_type": "cottage",
        "price": Decimal("100.00"),
        "price_period": "night",
        "bedrooms": 2,
        "bathrooms": 1,
        "max_guests": 4,
        "street": "1 Harbour St",
        "city": "Brighton",
        "state": "East Sussex",
        "zip_code": "BN1 1AA",
        "country": "UK",
        "latitude": 50.8225,
        "longitude": -0.1372,
        "amenities": ["wifi", "kitchen"],
        "images": [{"url": "https://img.test/cottage.jpg", "caption": "Front"}],
        "is_available": True,
        "is_approved": True,
    }
    values.update(overrides)
    prop = Property(**values)
    db.add(prop)
    await db.flush()
    await db.refresh(prop)
    return prop


async def make_booking(
    db: AsyncSession,
    prop: Property,
    guest: User,
    check_in: date,
    nights: int = 3,
    **overrides,
) -> Booking:
    """Insert a booking directly, bypassing the API's date checks."""
    values = {
        "property_id": prop.id,
        "guest_id": guest.id,
        "host_id": prop.host_id,
        "check_in": check_in,
        "check_out": check_in + timedelta(days=nights),
        "num_guests": 2,
        "total_price": prop.price * nights,
        "currency": "USD",
        "status": "pending",
        "payment_status": "pending",
    }
    values.update(overrides)
    booking = Booking(**values)
    db.add(booking)
    await db.flush()
    await db.refresh(booking)
    return booking


def future(days: int) -> date:
    return utc_today() + timedelta(days=days)


# ---------------------------------------------------------------------------
# Convenience fixtures: users and a listing
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """A regular guest account."""
    return await make_user(db_session, "user", name="Guest User")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict[str, str]:
    return auth_header(test_user)


@pytest_asyncio.fixture
async def test_host(db_session: AsyncSession) -> User:
    return await make_user(db_session, "host", name="Host User")


@pytest_asyncio.fixture
async def host_headers(test_host: User) -> dict[str, str]:
    return auth_header(test_host)


@pytest_asyncio.fixture
async def test_admin(db_session: AsyncSession) -> User:
    return await make_user(db_session, "admin", name="Admin User")


@pytest_asyncio.fixture
async def admin_headers(test_admin: User) -> dict[str, str]:
    return auth_header(test_admin)


@pytest_asyncio.fixture
async def test_property(db_session: AsyncSession, test_host: User) -> Property:
    return await make_property(db_session, test_host)
