"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timezone
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from dayflow.auth.service import issue_session
from dayflow.common.constants import (
    CurrentAttendanceStatus,
    EmploymentStatus,
    EmploymentType,
    UserRole,
)
from dayflow.common.rate_limit import limiter
from dayflow.database import Base, get_db
from dayflow.main import create_app

# Import ALL model modules so metadata.create_all sees every table
import dayflow.attendance.models  # noqa: F401
import dayflow.auth.models  # noqa: F401
import dayflow.common.audit  # noqa: F401
import dayflow.core_hr.models  # noqa: F401
import dayflow.leave.models  # noqa: F401
import dayflow.notifications.models  # noqa: F401
import dayflow.salary.models  # noqa: F401
from dayflow.core_hr.models import Employee

# ── SQLite compat: compile PG-specific types to TEXT ────────────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
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


@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and gen_random_uuid() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "gen_random_uuid", 0, lambda: uuid.uuid4().hex,
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
    """Clear slowapi's in-memory counters so limits never leak between tests."""
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


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
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


# ── Model factories ─────────────────────────────────────────────────

def _make_employee(
    *,
    email: Optional[str] = None,
    first_name: str = "Test",
    last_name: str = "User",
    role: UserRole = UserRole.employee,
    department: str = "Engineering",
    join_date: date = date(2024, 1, 15),
    date_of_birth: Optional[date] = None,
    is_active: bool = True,
) -> dict:
    suffix = uuid.uuid4().hex[:6]
    return dict(
        id=uuid.uuid4(),
        employee_code=f"DF-{suffix.upper()}",
        first_name=first_name,
        last_name=last_name,
        email=email or f"{first_name.lower()}.{suffix}@dayflow.io",
        department=department,
        role=role,
        employment_type=EmploymentType.full_time,
        status=EmploymentStatus.active,
        current_attendance_status=CurrentAttendanceStatus.not_checked_in,
        join_date=join_date,
        date_of_birth=date_of_birth,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def seed_employee(db: AsyncSession, **kwargs) -> Employee:
    """Insert and commit an employee built from ``_make_employee`` defaults."""
    employee = Employee(**_make_employee(**kwargs))
    db.add(employee)
    await db.commit()
    return employee


async def headers_for(db: AsyncSession, employee: Employee) -> dict[str, str]:
    """Bearer headers backed by a real persisted session."""
    token, _ = await issue_session(db, employee)
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def employee(db) -> Employee:
    return await seed_employee(db, first_name="Asha", last_name="Rao")


@pytest.fixture
async def hr_user(db) -> Employee:
    return await seed_employee(
        db, first_name="Hema", last_name="Iyer", role=UserRole.hr, department="Human Resources",
    )


@pytest.fixture
async def admin_user(db) -> Employee:
    return await seed_employee(
        db, first_name="Arjun", last_name="Mehta", role=UserRole.admin, department="Operations",
    )


@pytest.fixture
async def employee_headers(db, employee) -> dict[str, str]:
    return await headers_for(db, employee)


@pytest.fixture
async def hr_headers(db, hr_user) -> dict[str, str]:
    return await headers_for(db, hr_user)


@pytest.fixture
async def admin_headers(db, admin_user) -> dict[str, str]:
    return await headers_for(db, admin_user)


@pytest.fixture
def mock_google_oauth():
    """Patch verify_google_token to return a fake Google identity."""

    def _mock(email: str, name: str = "Test User"):
        google_info = {
            "email": email,
            "name": name,
            "google_id": f"google-{uuid.uuid4().hex[:12]}",
        }
        return patch(
            "dayflow.auth.router.verify_google_token",
            new_callable=AsyncMock,
            return_value=google_info,
        )

    return _mock
