"""
Shared test fixtures for the time-clock test suite.

Async SQLAlchemy on an in-memory aiosqlite database, one fresh engine per
test, and a settable civil clock injected through ``get_clock``.
"""

import os
import sys
from datetime import datetime, timezone
from typing import AsyncGenerator
from zoneinfo import ZoneInfo

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["MAILGUN_API_KEY"] = ""
os.environ["MAILGUN_DOMAIN"] = ""

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_clock, get_current_active_user, get_db
from app.core.clock import CivilClock
from app.core.security import get_password_hash
from app.db.base import Base
from app.main import app
from app.models.user import ROLE_ADMIN, ROLE_EMPLOYEE, User

SAO_PAULO = ZoneInfo("America/Sao_Paulo")


class SettableNow:
    """Now-provider the tests can move around."""

    def __init__(self, value: datetime):
        self.value = value

    def __call__(self) -> datetime:
        return self.value

    def set(self, year, month, day, hour=0, minute=0, second=0) -> None:
        self.value = datetime(year, month, day, hour, minute, second, tzinfo=SAO_PAULO)


def civil(year, month, day, hour=0, minute=0, second=0) -> datetime:
    """An instant on the São Paulo wall clock, converted to UTC for storage."""
    return datetime(year, month, day, hour, minute, second, tzinfo=SAO_PAULO).astimezone(
        timezone.utc
    )


@pytest.fixture
def now() -> SettableNow:
    # Monday 2024-03-04 08:10 in São Paulo
    return SettableNow(datetime(2024, 3, 4, 8, 10, tzinfo=SAO_PAULO))


@pytest.fixture
def clock(now: SettableNow) -> CivilClock:
    return CivilClock(SAO_PAULO, now)


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh in-memory database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


async def _make_user(session_factory, email: str, name: str, role: str) -> User:
    async with session_factory() as session:
        user = User(
            email=email,
            hashed_password=get_password_hash("secret123"),
            name=name,
            role=role,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest.fixture
async def admin_user(session_factory) -> User:
    return await _make_user(session_factory, "admin@test.com", "Ana Admin", ROLE_ADMIN)


@pytest.fixture
async def employee_user(session_factory) -> User:
    return await _make_user(session_factory, "joao@test.com", "João Silva", ROLE_EMPLOYEE)


@pytest.fixture
async def other_employee(session_factory) -> User:
    return await _make_user(session_factory, "maria@test.com", "Maria Souza", ROLE_EMPLOYEE)


@pytest.fixture
async def async_client(session_factory, clock) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app, test DB and test clock."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    """Authenticate subsequent requests as ``user`` (bypasses JWT)."""

    def _login(user: User) -> None:
        async def _override() -> User:
            return user

        app.dependency_overrides[get_current_active_user] = _override

    return _login
