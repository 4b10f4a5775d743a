"""
Shared test fixtures for the portal test suite.

Async throughout (aiosqlite + AsyncSession). The request clock is frozen
through a dependency override so policy windows and token expiry are
deterministic.
"""

import itertools
import os
import sys
from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["SECRET_KEY"] = "test-secret-key-that-is-only-used-by-the-suite"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
# Canonical policy, evaluated in UTC so test instants read as local time
os.environ["CHECKIN_OPEN"] = "09:00"
os.environ["LATE_AFTER"] = "09:15"
os.environ["CHECKIN_CLOSE"] = "12:00"
os.environ["CHECKOUT_CUTOFF"] = "15:55"
os.environ["TIMEZONE_OFFSET"] = "+00:00"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from portal.api.v1.deps import get_db, get_now
from portal.core.security import get_password_hash
from portal.db.base import Base
from portal.main import app
from portal.models.user import ROLE_EMPLOYEE, User
from portal.schemas.user import Subject
from portal.services.sessions import SessionManager

TODAY = datetime(2026, 10, 19, tzinfo=timezone.utc).date()
PASSWORD = "password123"


def at(hour: int, minute: int = 0, second: int = 0, day=TODAY) -> datetime:
    """An aware UTC instant on *day* (UTC is the policy timezone in tests)."""
    return datetime(day.year, day.month, day.day, hour, minute, second, tzinfo=timezone.utc)


# Create a test engine for the entire session
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before usage and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = _override_get_db


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return now


@pytest.fixture
def clock():
    """Freeze the server clock at 09:00 on TODAY; tests move it with ``clock.set``."""
    frozen = FrozenClock(at(9, 0))
    app.dependency_overrides[get_now] = lambda: frozen.now
    yield frozen
    app.dependency_overrides.pop(get_now, None)


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Insert a user; ``password=None`` leaves the account without a hash."""
    counter = itertools.count(1)

    async def _make(
        email: str | None = None,
        password: str | None = PASSWORD,
        role: str = ROLE_EMPLOYEE,
        is_active: bool = True,
    ) -> User:
        n = next(counter)
        user = User(
            email=email or f"employee{n}@portal.test",
            emp_id=f"EMP-{n:04d}",
            name=f"Employee {n}",
            role=role,
            is_active=is_active,
            hashed_password=get_password_hash(password) if password is not None else None,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def auth_headers(clock: FrozenClock):
    """Bearer headers for *user*, issued at the frozen clock's current time."""

    def _headers(user: User) -> dict[str, str]:
        issued = SessionManager().issue(
            Subject(id=user.id, email=user.email, role=user.role), clock.now
        )
        return {"Authorization": f"Bearer {issued.access_token}"}

    return _headers
