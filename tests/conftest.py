"""
tests/conftest.py
Shared fixtures: a fresh SQLite database per test, an in-process fake
Redis, an httpx client bound to the app, and sample profiles/vehicles.
"""

import os

# Settings are read once at import time; configure them before the app loads.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("ADMIN_EMAILS", "owner@example.com")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("SEED_SAMPLE_DATA", "false")

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest_asyncio
from fakeredis import aioredis as fake_aioredis
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config.database import Base, get_db
from config.redis_client import get_redis
from main import app
from shared.models.models import Booking, BookingStatus, PaymentStatus, Profile, Vehicle
from shared.utils.security import create_access_token, hash_password

TEST_PASSWORD = "correct-horse-battery"
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


def auth_headers(profile: Profile) -> dict:
    token, _ = create_access_token(user_id=str(profile.id), email=profile.email)
    return {"Authorization": f"Bearer {token}"}


# ── Infrastructure ─────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def redis():
    client = fake_aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest_asyncio.fixture
async def client(session_factory, redis):
    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_redis] = lambda: redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Profiles ───────────────────────────────────────────────────────────────────

async def _make_profile(db: AsyncSession, email: str, full_name: str, is_admin: bool = False) -> Profile:
    profile = Profile(email=email, password_hash=_PASSWORD_HASH, full_name=full_name, is_admin=is_admin)
    db.add(profile)
    await db.commit()
    return profile


@pytest_asyncio.fixture
async def user(db) -> Profile:
    return await _make_profile(db, "renter@example.com", "Rita Renter")


@pytest_asyncio.fixture
async def other_user(db) -> Profile:
    return await _make_profile(db, "someone@example.com", "Sam Someone")


@pytest_asyncio.fixture
async def admin_user(db) -> Profile:
    """Admin through the stored flag."""
    return await _make_profile(db, "fleet@example.com", "Fleet Manager", is_admin=True)


@pytest_asyncio.fixture
async def configured_admin(db) -> Profile:
    """Admin through ADMIN_EMAILS only; the stored flag is false."""
    return await _make_profile(db, "owner@example.com", "Owner")


# ── Vehicles & Bookings ────────────────────────────────────────────────────────

async def _make_vehicle(db: AsyncSession, **overrides) -> Vehicle:
    data = {
        "name": "Toyota Camry 2024",
        "type": "Sedan",
        "brand": "Toyota",
        "model": "Camry",
        "year": 2024,
        "price_per_day": Decimal("45.00"),
        "features": ["Bluetooth", "Backup Camera"],
        "location": "Downtown",
        "available": True,
    }
    data.update(overrides)
    vehicle = Vehicle(**data)
    db.add(vehicle)
    await db.commit()
    return vehicle


@pytest_asyncio.fixture
async def vehicle(db) -> Vehicle:
    return await _make_vehicle(db)


@pytest_asyncio.fixture
async def unavailable_vehicle(db) -> Vehicle:
    return await _make_vehicle(
        db, name="Ford F-150 2023", type="Truck", brand="Ford", model="F-150",
        price_per_day=Decimal("75.00"), location="Industrial District", available=False,
    )


async def _make_booking(db: AsyncSession, owner: Profile, vehicle: Vehicle, **overrides) -> Booking:
    start = datetime.now(timezone.utc) - timedelta(days=10)
    data = {
        "user_id": owner.id,
        "vehicle_id": vehicle.id,
        "start_date": start,
        "end_date": start + timedelta(days=3),
        "pickup_location": "Downtown",
        "total_price": Decimal("135.00"),
        "status": BookingStatus.COMPLETED,
        "payment_status": PaymentStatus.COMPLETED,
    }
    data.update(overrides)
    booking = Booking(**data)
    db.add(booking)
    await db.commit()
    return booking


@pytest_asyncio.fixture
async def completed_booking(db, user, vehicle) -> Booking:
    return await _make_booking(db, user, vehicle)


@pytest_asyncio.fixture
async def make_booking(db):
    """Factory for bookings with arbitrary owner, vehicle, dates and status."""
    async def _factory(owner: Profile, vehicle: Vehicle, **overrides) -> Booking:
        return await _make_booking(db, owner, vehicle, **overrides)
    return _factory


@pytest_asyncio.fixture
async def make_vehicle(db):
    async def _factory(**overrides) -> Vehicle:
        return await _make_vehicle(db, **overrides)
    return _factory
