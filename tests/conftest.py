from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from pto_ledger.config import reset_settings
from pto_ledger.db import get_session
from pto_ledger.main import app
from pto_ledger.models import Employee, EmployeeBalance, SQLModel
from pto_ledger.schemas.auth import AuthContext

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Give every test default settings with no retry backoff."""
    monkeypatch.setenv("CONFLICT_BACKOFF_SECONDS", "0")
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Create a fresh in-memory database per test.

    StaticPool keeps the single in-memory connection alive so every session
    in the test sees the same schema and data.
    """
    _engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def file_engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """File-backed database for tests that need truly concurrent sessions.

    NullPool gives every session its own connection, so two sessions hold
    independent transactions against the same data.
    """
    _engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", poolclass=NullPool)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Yield a session for calling services directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def admin() -> AuthContext:
    return AuthContext(user_id=ADMIN_ID, role="admin")


@pytest.fixture
def make_employee(db_session: AsyncSession) -> Callable[..., Awaitable[uuid.UUID]]:
    """Insert an employee with the given balances and commit; returns the id."""

    async def _make(
        full_name: str = "Test Employee",
        *,
        is_active: bool = True,
        sick_current: str = "0",
        sick_rollover: str = "0",
        vac_current: str = "0",
        vac_rollover: str = "0",
    ) -> uuid.UUID:
        employee = Employee(full_name=full_name, hire_date=date(2024, 1, 15), is_active=is_active)
        db_session.add(employee)
        await db_session.flush()
        employee_id = employee.id
        db_session.add(
            EmployeeBalance(
                employee_id=employee_id,
                sick_current=Decimal(sick_current),
                sick_rollover=Decimal(sick_rollover),
                vac_current=Decimal(vac_current),
                vac_rollover=Decimal(vac_rollover),
            )
        )
        await db_session.commit()
        return employee_id

    return _make
