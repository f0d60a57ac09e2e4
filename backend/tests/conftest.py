"""
Centralized Test Configuration.
"""

from datetime import datetime

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, init_models, Base
from backend.app.core.dependencies import get_conduct_classifier
from backend.app.core.jwt import create_access_token
from backend.app.domain.trips.records import AlertDetailRecord, TripRecord
from backend.app.domain.trips.store import SqlAlchemyTripStore
from backend.app.domain.trips.trip_service import TripService
from backend.app.models.city import City
from backend.app.models.enums import UserRole
from backend.app.models.trip_enums import TripConduct, TripStatus
from backend.app.models.user import User

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class StubClassifier:
    """Stands in for the prediction service client."""

    def __init__(self, label=TripConduct.NORMAL, error: Exception = None):
        self.label = label
        self.error = error
        self.calls = []

    async def classify(self, payload):
        self.calls.append(payload)
        if self.error is not None:
            raise self.error
        return self.label


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    await init_models(engine)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def classifier():
    return StubClassifier()


@pytest.fixture
def store(db_session):
    return SqlAlchemyTripStore(db_session)


@pytest.fixture
def service(store, classifier):
    return TripService(store, classifier)


@pytest.fixture
async def client(classifier):
    """Async client for testing."""
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_conduct_classifier] = lambda: classifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


@pytest.fixture
def auth_headers():
    """Build bearer headers for an arbitrary identity."""
    def _headers(user_id: int, role: UserRole, company_id: int = None):
        token = create_access_token(data={
            "sub": f"user{user_id}",
            "user_id": user_id,
            "role": role.value,
            "company_id": company_id,
        })
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
async def fleet(db_session):
    """
    Two tenants.

    Company 1: account 1, drivers 11 and 12, cities Paris / Lyon / Marseille.
    Company 2: account 2, driver 21, cities Berlin / Hamburg.
    """
    db_session.add_all([
        User(id=1, email="acme@test.com", name="Acme", role=UserRole.COMPANY, company_id=1),
        User(id=11, email="ana@test.com", name="Ana", role=UserRole.DRIVER, company_id=1),
        User(id=12, email="ben@test.com", name="Ben", role=UserRole.DRIVER, company_id=1),
        User(id=2, email="globex@test.com", name="Globex", role=UserRole.COMPANY, company_id=2),
        User(id=21, email="carl@test.com", name="Carl", role=UserRole.DRIVER, company_id=2),
    ])
    cities = {
        "paris": City(name="Paris", company_id=1),
        "lyon": City(name="Lyon", company_id=1),
        "marseille": City(name="Marseille", company_id=1),
        "berlin": City(name="Berlin", company_id=2),
        "hamburg": City(name="Hamburg", company_id=2),
    }
    db_session.add_all(cities.values())
    await db_session.commit()
    return {name: city.id for name, city in cities.items()}


@pytest.fixture
def make_trip(store):
    """Persist a trip record directly through the store."""
    async def _make(company_id, user_id, origin, destination, start_date,
                    status=TripStatus.CREATED, responded=(), end_date=None,
                    conduct=TripConduct.NORMAL):
        details = tuple(
            AlertDetailRecord(
                timestamp=datetime(2024, 3, 1, 8, minute),
                type="FATIGUE",
                responded=flag,
            )
            for minute, flag in enumerate(responded)
        )
        return await store.save(TripRecord(
            company_id=company_id,
            user_id=user_id,
            origin_city_id=origin,
            destination_city_id=destination,
            start_date=start_date,
            end_date=end_date,
            status=status,
            conduct=conduct,
            details=details,
        ))
    return _make
