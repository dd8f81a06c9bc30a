"""Shared test fixtures — async DB, client, fake portal, session helpers.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL, and an
``httpx.MockTransport`` in place of the upstream portal API.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Optional

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from taskdesk.auth.service import create_access_token, hash_token
from taskdesk.common.constants import UserRole
from taskdesk.config import settings
from taskdesk.database import Base, get_db
from taskdesk.main import create_app
from taskdesk.upstream.client import UpstreamClient

# Import ALL model modules so their tables are registered on Base.metadata
import taskdesk.auth.models  # noqa: F401
import taskdesk.common.audit  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/BLOB ───────────

from sqlalchemy.dialects.postgresql import INET, JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(INET, "sqlite")
def _inet_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and gen_random_uuid() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "gen_random_uuid", 0, lambda: str(uuid.uuid4()),
    )

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from taskdesk.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Fake upstream portal ────────────────────────────────────────────

PORTAL_URL = "http://portal.test/api"


class FakePortal:
    """Canned upstream responses keyed by (method, path), plus a request log."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, body: Any = None, status: int = 200) -> None:
        self.routes[(method.upper(), "/api" + path)] = (status, body)

    def fail(self, method: str, path: str, exc: Exception) -> None:
        self.routes[(method.upper(), "/api" + path)] = (0, exc)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"msg": "Route not found"})
        status, body = route
        if isinstance(body, Exception):
            raise body
        return httpx.Response(status, json=body)

    def sent(self, method: str, path: str) -> Optional[httpx.Request]:
        """Last request sent to *path*, if any."""
        for request in reversed(self.requests):
            if request.method == method.upper() and request.url.path == "/api" + path:
                return request
        return None

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)

    def client(self) -> UpstreamClient:
        return UpstreamClient(PORTAL_URL, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def portal() -> FakePortal:
    return FakePortal()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app(portal):
    """Create a fresh app instance with DB and upstream overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    application.state.upstream = portal.client()
    yield application
    await application.state.upstream.aclose()
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Session helpers ─────────────────────────────────────────────────

def make_profile(role: UserRole, **overrides: Any) -> dict[str, Any]:
    profile = {
        "id": overrides.pop("id", uuid.uuid4().hex[:24]),
        "role": role.value,
        "name": f"Test {role.value.title()}",
        "email": f"{role.value}@pydah.edu.in",
        "employee_id": None,
        "campus": "engineering",
        "department": None,
        "branch_code": None,
        "hod_type": None,
    }
    if role == UserRole.hod:
        profile.update(branch_code="cse", department="Computer Science", hod_type="teaching")
    if role == UserRole.employee:
        profile.update(employee_id="EMP001", branch_code="cse")
    profile.update(overrides)
    return profile


async def open_session(
    db: AsyncSession,
    role: UserRole,
    *,
    upstream_token: str = "portal-token",
    expired: bool = False,
    **profile_overrides: Any,
) -> dict[str, str]:
    """Persist a portal session for *role* and return its Bearer headers."""
    from taskdesk.auth.models import PortalSession

    profile = make_profile(role, **profile_overrides)
    token, _ = create_access_token(profile["id"], role)
    expires_at = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    if expired:
        expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)

    db.add(PortalSession(
        id=uuid.uuid4(),
        user_id=profile["id"],
        role=role.value,
        token_hash=hash_token(token),
        upstream_token=upstream_token,
        profile=profile,
        expires_at=expires_at,
        is_revoked=False,
        created_at=datetime.now(timezone.utc),
    ))
    await db.flush()
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def session_headers(db):
    """Factory fixture: ``await session_headers(UserRole.hr)``."""

    async def _open(role: UserRole, **kwargs: Any) -> dict[str, str]:
        return await open_session(db, role, **kwargs)

    return _open
