from __future__ import annotations

import uuid
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from pto_ledger.db import get_session
from pto_ledger.main import app

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

ADMIN_HEADERS = {"X-User-Id": str(uuid.uuid4()), "X-Role": "admin"}


async def test_health_returns_200(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    assert response.status_code == 200


async def test_health_response_body(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == "0.1.0"
    assert data["environment"] == "development"
    assert data["last_monthly_accrual"] is None
    assert data["last_year_end_rollover"] is None


async def test_health_reports_last_batch_periods(async_client: AsyncClient) -> None:
    accrual = await async_client.post("/accruals/monthly", headers=ADMIN_HEADERS)
    rollover = await async_client.post("/rollovers/year-end", headers=ADMIN_HEADERS)

    data = (await async_client.get("/health")).json()

    assert data["last_monthly_accrual"] == accrual.json()["period"]
    assert data["last_year_end_rollover"] == rollover.json()["period"]


async def test_health_needs_no_auth_headers(async_client: AsyncClient) -> None:
    """GET /health is the only endpoint open without X-User-Id / X-Role."""
    response = await async_client.get("/health")
    assert response.status_code == 200

    protected = await async_client.get("/employees")
    assert protected.status_code == 422


async def test_health_degraded_on_db_failure() -> None:
    """GET /health returns degraded status when the database is unreachable."""
    mock_session = AsyncMock(spec=AsyncSession)
    mock_session.execute.side_effect = ConnectionError("DB unreachable")

    async def _broken_session() -> AsyncIterator[AsyncSession]:
        yield mock_session

    app.dependency_overrides[get_session] = _broken_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")
        data = response.json()
        assert response.status_code == 200
        assert data["status"] == "degraded"
    finally:
        app.dependency_overrides.clear()
