"""
Test fixtures for the Fleet Access test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh SQLite database (seeded page matrix) per test
  - client: Async HTTP test client (unauthenticated) bound to the app
  - reset_outbox: Password reset tickets captured instead of being sent
  - make_user: Provision a user directly with a given role and active flag
  - login: Log a user in through the API and return the session token
  - api / gateway / resolver: The client package wired to the test app

Key design decisions:
  - Each test gets its own SQLite file under tmp_path. The session monitor
    runs in the background while the test talks to the API, so requests
    can overlap; separate connections keep their transactions apart.
  - We override FastAPI's get_db dependency to inject our test sessions,
    with the same commit/rollback rules as production.
  - Users are provisioned through create_account (the real service), not
    raw inserts, so the primary and secondary credential stores match.
"""

import os

# Settings are read at import time; configure them before importing the app
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ADMIN_EMAILS", '["chief@fleetops.io"]')
os.environ.setdefault("ALLOWED_EMAIL_DOMAINS", '["pg.com"]')
os.environ.setdefault("LOG_JSON", "false")

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from fleet_auth.client import AccessResolver, AuthGateway, FleetAuthAPI, SessionEvents
from fleet_auth.database import Base, get_db
from fleet_auth.dependencies import get_reset_notifier
from fleet_auth.exceptions import FleetAuthError
from fleet_auth.main import app
from fleet_auth.models.user import UserRole
from fleet_auth.services import access_service, auth_service


DEFAULT_PASSWORD = "FleetPass123!"


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a fresh async engine with all tables and the default page matrix."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fleet_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        await access_service.seed_page_restrictions(session)
        await session.commit()

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def reset_outbox():
    """Password reset tickets handed to the notifier during the test."""
    return []


@pytest_asyncio.fixture
async def client(session_factory, reset_outbox):
    """
    Async HTTP test client with the test database injected.

    This overrides the get_db dependency so all requests hit the test
    database instead of the real one, and the reset notifier so tests can
    read the reset token a user would have received.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except FleetAuthError:
                await session.commit()
                raise
            except Exception:
                await session.rollback()
                raise

    async def capture_ticket(ticket):
        reset_outbox.append(ticket)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reset_notifier] = lambda: capture_ticket

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_user(session_factory):
    """
    Provision an account with the given role, bypassing the signup allow-list.

    This simulates an administrator having already activated the user.
    """

    async def _make_user(
        email: str,
        password: str = DEFAULT_PASSWORD,
        role: UserRole = UserRole.DRIVER,
        is_active: bool = True,
        full_name: str = "Test User",
    ):
        async with session_factory() as session:
            user = await auth_service.create_account(
                session,
                email=email,
                password=password,
                full_name=full_name,
                role=role,
                is_active=is_active,
            )
            await session.commit()
        return user

    return _make_user


@pytest_asyncio.fixture
async def login(client):
    """Log in through the API and return the session token."""

    async def _login(email: str, password: str = DEFAULT_PASSWORD) -> str:
        response = await client.post(
            "/auth/login",
            json={"email": email, "password": password},
        )
        assert response.status_code == 200, f"Login failed: {response.text}"
        return response.json()["session_token"]

    return _login


@pytest_asyncio.fixture
async def api(client):
    """Client-side API wrapper talking to the test app."""
    fleet_api = FleetAuthAPI(client=client)
    yield fleet_api
    await fleet_api.close()


@pytest_asyncio.fixture
async def events():
    return SessionEvents()


@pytest_asyncio.fixture
async def gateway(api, events):
    """Auth gateway with the default 60s monitor interval (first tick is immediate)."""
    auth_gateway = AuthGateway(api, events=events)
    yield auth_gateway
    auth_gateway.monitor.stop()
    await auth_gateway.monitor.wait_closed()


@pytest_asyncio.fixture
async def resolver(api, gateway):
    return AccessResolver(api, gateway.store)
