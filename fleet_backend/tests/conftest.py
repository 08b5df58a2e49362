"""
Centralized Test Configuration.
"""

import json
import pytest
from datetime import date, time
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from fleet_backend.app.main import app
from fleet_backend.app.db.session import get_db, Base
from fleet_backend.app.core.jwt import create_access_token
from fleet_backend.app.core.redis_client import get_redis
import fleet_backend.app.core.redis_client as redis_client_module
from fleet_backend.app.models.fleet import Client, Vehicle, Driver
from fleet_backend.app.models.trip import Trip, new_id
from fleet_backend.app.models.trip_enums import ClientType, DbServiceType, TripStatus

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self.published = []
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def incr(self, key):
        value = int(self.store.get(key) or 0) + 1
        self.store[key] = str(value)
        return value

    async def delete(self, key):
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 0

    def published_events(self, table=None):
        events = [json.loads(message) for _, message in self.published]
        if table is not None:
            events = [e for e in events if e["table"] == table]
        return events

    async def flushdb(self):
        self.store = {}
        self.published = []

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture(scope="session")
def mock_redis():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(mock_redis):
    """Route every Redis use (dependencies and module global) to the mock."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = mock_redis

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_redis] = override_get_redis
    yield

    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def session_factory(mock_redis):
    """Fresh in-memory database per test, wired into the app."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    await mock_redis.flushdb()

    yield factory

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Reference data

@pytest.fixture
async def org_client(db_session):
    record = Client(id=new_id(), name="Acme Corp", type=ClientType.ORGANIZATION, email="ops@acme.test")
    db_session.add(record)
    await db_session.commit()
    return record


@pytest.fixture
async def individual_client(db_session):
    record = Client(id=new_id(), name="Jane Doe", type=ClientType.INDIVIDUAL)
    db_session.add(record)
    await db_session.commit()
    return record


@pytest.fixture
async def vehicle(db_session):
    record = Vehicle(id=new_id(), make="Toyota", model="Land Cruiser", registration="KDA 123A")
    db_session.add(record)
    await db_session.commit()
    return record


@pytest.fixture
async def driver(db_session):
    record = Driver(id=new_id(), name="John Kamau", contact="+254700000001", avatar_url="https://img.test/jk.png")
    db_session.add(record)
    await db_session.commit()
    return record


@pytest.fixture
async def other_driver(db_session):
    record = Driver(id=new_id(), name="Mary Wanjiku", contact="+254700000002")
    db_session.add(record)
    await db_session.commit()
    return record


@pytest.fixture
def make_trip(db_session, org_client):
    """Insert a trip directly, bypassing the save workflow."""
    async def _make(**overrides):
        fields = {
            "id": new_id(),
            "client_id": org_client.id,
            "date": date(2024, 1, 1),
            "time": time(9, 0),
            "service_type": DbServiceType.ONE_WAY_TRANSFER,
            "status": TripStatus.SCHEDULED,
            "pickup_location": "JKIA",
            "dropoff_location": "Westlands",
            "amount": 0,
        }
        fields.update(overrides)
        trip = Trip(**fields)
        db_session.add(trip)
        await db_session.commit()
        return trip
    return _make


# Tokens

def make_token(role: str, **claims) -> str:
    payload = {"sub": f"{role.lower()}@fleet.test", "user_id": new_id(), "role": role}
    payload.update(claims)
    return create_access_token(payload)


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token('ADMIN', name='Fleet Admin')}"}


@pytest.fixture
def dispatcher_headers():
    return {"Authorization": f"Bearer {make_token('DISPATCHER', name='Dispatch Desk')}"}


@pytest.fixture
def driver_headers(driver):
    return {"Authorization": f"Bearer {make_token('DRIVER', name=driver.name, driver_id=driver.id)}"}


@pytest.fixture
def token_for():
    return make_token
