import os

# settings are read at import time; keep tests off real infrastructure
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["ENABLE_AI_PRICING"] = "false"
os.environ["PRICING_PROFILE"] = "competitive"
os.environ["ENABLE_VAT"] = "true"
os.environ.pop("WEBHOOK_URL", None)

import pytest
from datetime import datetime, timedelta, timezone
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.session import get_db
from app.models.audit import AdminAuditLog  # noqa: F401
from app.models.booking import Booking
from app.models.job import Job, JobItem
from app.models.base import Base
from app.core.security import ALGORITHM, create_access_token
from app.core.config import settings
from app.core.enums import BookingStatus, UserRole


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def test_client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_token():
    return create_access_token("admin_1", UserRole.ADMIN)


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def agent_token():
    return create_access_token("agent_1", UserRole.AGENT)


@pytest.fixture
def expired_token():
    payload = {
        "sub": "admin_1",
        "role": UserRole.ADMIN.value,
        "exp": datetime.now(timezone.utc) - timedelta(hours=1),  # expired 1 hour ago
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


@pytest.fixture
def create_booking_factory(session_factory):
    """
    Persist a booked job with its booking.

    Defaults describe a Man & Van job: 10 miles, two single beds (measurements
    from the catalogue), second floor pickup without a lift, on Wednesday
    2026-04-15 requested on 2026-03-01.
    """
    async def _create_booking(final_price=140.0, items=None, status=BookingStatus.CONFIRMED, **job_fields):
        job_data = {
            "job_type": "man_and_van",
            "pickup_address": "1 High Street, Leeds",
            "delivery_address": "22 Park Road, Leeds",
            "distance_miles": 10.0,
            "pickup_floor": 2,
            "pickup_has_lift": False,
            "delivery_floor": 0,
            "delivery_has_lift": False,
            "move_date": datetime(2026, 4, 15, 9, 0),
            "created_at": datetime(2026, 3, 1, 12, 0),
            "contact_name": "Sam Taylor",
            "estimated_price": final_price,
        }
        job_data.update(job_fields)
        if items is None:
            items = [{"name": "Single bed", "category": "Bedroom", "quantity": 2}]

        async with session_factory() as session:
            job = Job(**job_data)
            job.items = [JobItem(**item) for item in items]
            booking = Booking(job=job, final_price=final_price, status=status)
            session.add(booking)
            await session.commit()
            return booking.id

    return _create_booking


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "auth: marks tests related to authentication"
    )
    config.addinivalue_line(
        "markers", "pricing: marks tests related to pricing"
    )
    config.addinivalue_line(
        "markers", "validation: marks tests related to external price validation"
    )
    config.addinivalue_line(
        "markers", "webhooks: marks tests related to webhooks"
    )
    config.addinivalue_line(
        "markers", "audit: marks tests related to audit logging"
    )
