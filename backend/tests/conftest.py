"""
Pytest fixtures for test database, client, and authentication.

Each test gets a fresh SQLite file (or TEST_DATABASE_URL when set) so that
background jobs, which open their own sessions, see exactly what the request
committed. Redis is disabled and job retries do not sleep.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["REDIS_ENABLED"] = "false"
os.environ["BACKGROUND_TASK_BACKOFF_SECONDS"] = "0"
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""

from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.main import app
from app.db.base import Base
from app.db.session import AsyncSessionLocal, configure_session_factory
from app.core.security import create_access_token, hash_password
from app.models.athlete import Athlete
from app.models.facility import Facility, Trainer
from app.models.user import User
from app.services.background import task_runner

MONDAY_HOURS = [{"day": "Monday", "open": "08:00", "close": "20:00"}]
EQUIPMENT = [
    {"name": "Racket", "price_per_hour": 200, "available": 4},
    {"name": "Shuttlecock tube", "price_per_hour": 50, "available": 10},
]


def next_weekday(weekday: int, weeks_ahead: int = 1) -> date:
    """A date on `weekday` (Monday=0) at least `weeks_ahead` weeks out."""
    today = date.today()
    days = (weekday - today.weekday()) % 7 or 7
    return today + timedelta(days=days + 7 * (weeks_ahead - 1))


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    test_engine = create_async_engine(url, poolclass=NullPool)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(engine) -> AsyncGenerator[async_sessionmaker, None]:
    """Point request handlers and background jobs at the test database."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    configure_session_factory(factory)
    yield factory
    await task_runner.drain()
    configure_session_factory(AsyncSessionLocal)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client; each request opens its own session on the test database."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def create_user(db: AsyncSession, email: str, name: str, role: str = "user") -> User:
    user = User(
        email=email,
        name=name,
        hashed_password=hash_password("testpassword123"),
        role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "test@example.com", "Test User")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "other@example.com", "Other User")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "admin@example.com", "Admin", role="admin")


@pytest_asyncio.fixture
async def auth_token(test_user: User) -> str:
    """Generate a JWT token for the test user."""
    return create_access_token(data={"sub": str(test_user.id), "role": test_user.role})


@pytest_asyncio.fixture
async def auth_headers(auth_token: str) -> dict:
    """Authorization headers with Bearer token."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return headers_for(other_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest_asyncio.fixture
async def facility(db_session: AsyncSession) -> Facility:
    """Badminton court open Mondays 08:00-20:00 at 1500/hour."""
    court = Facility(
        name="Court A",
        location="Colombo",
        address="12 Stadium Road",
        price_per_hour=Decimal("1500"),
        operating_hours=MONDAY_HOURS,
        equipment_for_rent=EQUIPMENT,
    )
    db_session.add(court)
    await db_session.commit()
    await db_session.refresh(court)
    return court


@pytest_asyncio.fixture
async def trainer_account(db_session: AsyncSession) -> User:
    return await create_user(db_session, "coach@example.com", "Coach Perera", role="trainer")


@pytest_asyncio.fixture
async def trainer(db_session: AsyncSession, trainer_account: User) -> Trainer:
    coach = Trainer(
        name="Coach Perera",
        specialization="Badminton",
        hourly_rate=Decimal("2000"),
        availability=["Monday", "Wednesday"],
        user_id=trainer_account.id,
    )
    db_session.add(coach)
    await db_session.commit()
    await db_session.refresh(coach)
    return coach


@pytest_asyncio.fixture
async def athlete(db_session: AsyncSession) -> Athlete:
    campaign = Athlete(
        name="Nimali Silva",
        sport="Athletics",
        goal_amount=Decimal("100000"),
        raised_amount=Decimal("0"),
    )
    db_session.add(campaign)
    await db_session.commit()
    await db_session.refresh(campaign)
    return campaign


@pytest.fixture
def booking_date() -> date:
    """A Monday comfortably outside the cancellation window."""
    return next_weekday(0, weeks_ahead=2)


@pytest.fixture
def user_factory(db_session: AsyncSession):
    """Create extra committed users: `await user_factory("a@b.c", "Name")`."""

    async def make(email: str, name: str, role: str = "user") -> User:
        return await create_user(db_session, email, name, role=role)

    return make


@pytest.fixture
def token_headers():
    return headers_for
