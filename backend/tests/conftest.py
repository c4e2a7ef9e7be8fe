"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own in-memory SQLite database. Fixture data is written
through `db_session`; every HTTP request (and every service call made via
`session_factory`) runs in a fresh session, the way requests do in production,
so a rolled-back request never expires the fixture objects.
"""

import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ["RESEND_API_KEY"] = ""
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from eventbook.main import app
from eventbook.db.base import Base
from eventbook.db.session import get_db
from eventbook.core.security import create_access_token, hash_password
from eventbook.models import Event, EventStatus, Reservation, User, UserRole
from eventbook.services import notification_service

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
PASSWORD = "password123"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Fresh in-memory database per test; StaticPool keeps it on one connection."""
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


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session used to set up fixture data."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(autouse=True)
async def drain_notifications():
    """Background emails must not outlive the test's event loop."""
    yield
    await notification_service.drain()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

async def create_user(
    session: AsyncSession,
    email: str,
    role: UserRole = UserRole.PARTICIPANT,
    first_name: str = "Test",
    last_name: str = "User",
) -> User:
    user = User(
        email=email,
        password_hash=hash_password(PASSWORD),
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    session.add(user)
    await session.commit()
    return user


def headers_for(user: User) -> dict:
    token = create_access_token(user.id, user.email, user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "admin@example.com", UserRole.ADMIN, "Ada", "Admin")


@pytest_asyncio.fixture
async def other_admin(db_session: AsyncSession) -> User:
    return await create_user(db_session, "admin2@example.com", UserRole.ADMIN, "Otto", "Other")


@pytest_asyncio.fixture
async def participant(db_session: AsyncSession) -> User:
    return await create_user(db_session, "alice@example.com", UserRole.PARTICIPANT, "Alice", "Attendee")


@pytest_asyncio.fixture
async def second_participant(db_session: AsyncSession) -> User:
    return await create_user(db_session, "bob@example.com", UserRole.PARTICIPANT, "Bob", "Builder")


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest_asyncio.fixture
async def other_admin_headers(other_admin: User) -> dict:
    return headers_for(other_admin)


@pytest_asyncio.fixture
async def participant_headers(participant: User) -> dict:
    return headers_for(participant)


@pytest_asyncio.fixture
async def second_participant_headers(second_participant: User) -> dict:
    return headers_for(second_participant)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

async def create_event(
    session: AsyncSession,
    owner: User,
    title: str = "Test Concert",
    capacity: int = 10,
    status: EventStatus = EventStatus.PUBLISHED,
    days_ahead: int = 30,
) -> Event:
    event = Event(
        title=title,
        description="An evening of live music for testing",
        date=datetime.now(timezone.utc) + timedelta(days=days_ahead),
        location="Test Venue",
        capacity=capacity,
        available_seats=capacity,
        status=status,
        owner_id=owner.id,
    )
    session.add(event)
    await session.commit()
    return event


@pytest_asyncio.fixture
async def draft_event(db_session: AsyncSession, admin_user: User) -> Event:
    return await create_event(db_session, admin_user, title="Draft Meetup", status=EventStatus.DRAFT)


@pytest_asyncio.fixture
async def published_event(db_session: AsyncSession, admin_user: User) -> Event:
    """Published event with 10 seats."""
    return await create_event(db_session, admin_user, title="Jazz Night", capacity=10)


@pytest_asyncio.fixture
async def small_event(db_session: AsyncSession, admin_user: User) -> Event:
    """Published event with 2 seats."""
    return await create_event(db_session, admin_user, title="Chef's Table", capacity=2)


# ---------------------------------------------------------------------------
# Read-back helpers
# ---------------------------------------------------------------------------

async def available_seats(session_factory, event_id: int) -> int:
    async with session_factory() as session:
        result = await session.execute(select(Event.available_seats).where(Event.id == event_id))
        return result.scalar_one()


async def reservation_status(session_factory, reservation_id: int):
    async with session_factory() as session:
        result = await session.execute(select(Reservation.status).where(Reservation.id == reservation_id))
        return result.scalar_one()
