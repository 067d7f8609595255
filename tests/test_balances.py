"""Tests for usage, single adjustments, clear balance, and the balance mutator rules."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import col

import pto_ledger.services.balance as balance_module
from pto_ledger.db import get_session
from pto_ledger.exceptions import (
    EmployeeInactiveError,
    InsufficientBalanceError,
    InvalidAmountError,
    NegativeResultError,
    NothingToClearError,
    UnknownEmployeeError,
)
from pto_ledger.main import app
from pto_ledger.models import Employee, EmployeeBalance
from pto_ledger.models.audit import AuditEntry
from pto_ledger.models.enums import AuditActionType, AuditCategory, BalanceField, ClearScope
from pto_ledger.schemas.balance import RecordAdjustmentRequest, RecordUsageRequest
from pto_ledger.services.balance import (
    Delta,
    DeltaClamped,
    SetTo,
    clear_balance,
    compute_new_value,
    get_employee_balance,
    record_adjustment,
    record_usage,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from sqlalchemy.engine import Connection
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from pto_ledger.schemas.auth import AuthContext

    MakeEmployee = Callable[..., Awaitable[uuid.UUID]]

ADMIN_HEADERS = {"X-User-Id": "00000000-0000-0000-0000-0000000000a1", "X-Role": "admin"}
EMPLOYEE_HEADERS = {"X-User-Id": str(uuid.uuid4()), "X-Role": "employee"}


async def _entries(session: AsyncSession, employee_id: uuid.UUID) -> list[AuditEntry]:
    result = await session.execute(
        select(AuditEntry).where(col(AuditEntry.employee_id) == employee_id).order_by(col(AuditEntry.id))
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Rule evaluation
# ---------------------------------------------------------------------------


def test_delta_adds_exactly() -> None:
    assert compute_new_value(Decimal("2.00"), Delta(Decimal("5.00")), BalanceField.VAC_CURRENT) == Decimal("7.00")


def test_delta_below_zero_rejected() -> None:
    with pytest.raises(InsufficientBalanceError):
        compute_new_value(Decimal("2.00"), Delta(Decimal("-2.01")), BalanceField.VAC_CURRENT)


def test_delta_to_exactly_zero_allowed() -> None:
    assert compute_new_value(Decimal("2.00"), Delta(Decimal("-2.00")), BalanceField.VAC_CURRENT) == Decimal("0.00")


def test_delta_clamped_floors_at_zero() -> None:
    assert compute_new_value(Decimal("3.00"), DeltaClamped(Decimal("-5.00")), BalanceField.SICK_CURRENT) == 0


def test_set_to_overrides() -> None:
    assert compute_new_value(Decimal("9.50"), SetTo(Decimal("1.25")), BalanceField.SICK_ROLLOVER) == Decimal("1.25")


def test_set_to_negative_rejected() -> None:
    with pytest.raises(InvalidAmountError):
        compute_new_value(Decimal("1.00"), SetTo(Decimal("-1.00")), BalanceField.SICK_ROLLOVER)


# ---------------------------------------------------------------------------
# record_usage
# ---------------------------------------------------------------------------


async def test_record_usage_deducts(db_session: AsyncSession, admin: AuthContext, make_employee: MakeEmployee) -> None:
    employee_id = await make_employee("Usage Ursula", vac_current="10")

    response = await record_usage(
        db_session,
        admin,
        employee_id,
        RecordUsageRequest(balance_field=BalanceField.VAC_CURRENT, hours=Decimal("4")),
    )

    assert response.previous_value == Decimal("10.00")
    assert response.new_value == Decimal("6.00")
    assert response.applied_hours == Decimal("-4.00")
    assert response.balance.vac_current == Decimal("6.00")
    assert response.balance.version == 2

    entries = await _entries(db_session, employee_id)
    assert len(entries) == 1
    assert entries[0].action_type == AuditActionType.PTO_USAGE
    assert entries[0].category == AuditCategory.USAGE
    assert entries[0].balance_field == BalanceField.VAC_CURRENT
    assert entries[0].actor_id == admin.user_id
    assert "Usage Ursula" in entries[0].note


async def test_record_usage_overdraw_rejected_and_unchanged(
    db_session: AsyncSession, admin: AuthContext, make_employee: MakeEmployee
) -> None:
    employee_id = await make_employee(sick_current="2")

    with pytest.raises(InsufficientBalanceError) as exc_info:
        await record_usage(
            db_session,
            admin,
            employee_id,
            RecordUsageRequest(balance_field=BalanceField.SICK_CURRENT, hours=Decimal("2.50")),
        )

    assert "Available: 2.00 hours" in exc_info.value.message
    balance = await get_employee_balance(db_session, employee_id)
    assert balance.sick_current == Decimal("2.00")
    assert balance.version == 1
    assert await _entries(db_session, employee_id) == []


async def test_record_usage_inactive_employee_rejected(
    db_session: AsyncSession, admin: AuthContext, make_employee: MakeEmployee
) -> None:
    employee_id = await make_employee(is_active=False, vac_current="8")

    with pytest.raises(EmployeeInactiveError):
        await record_usage(
            db_session,
            admin,
            employee_id,
            RecordUsageRequest(balance_field=BalanceField.VAC_CURRENT, hours=Decimal("1")),
        )


async def test_record_usage_unknown_employee(db_session: AsyncSession, admin: AuthContext) -> None:
    with pytest.raises(UnknownEmployeeError):
        await record_usage(
            db_session,
            admin,
            uuid.uuid4(),
            RecordUsageRequest(balance_field=BalanceField.VAC_CURRENT, hours=Decimal("1")),
        )


# ---------------------------------------------------------------------------
# record_adjustment
# ---------------------------------------------------------------------------


async def test_record_adjustment_positive_and_negative(
    db_session: AsyncSession, admin: AuthContext, make_employee: MakeEmployee
) -> None:
    employee_id = await make_employee(vac_rollover="3")

    added = await record_adjustment(
        db_session,
        admin,
        employee_id,
        RecordAdjustmentRequest(balance_field=BalanceField.VAC_ROLLOVER, hours=Decimal("2.25"), note="Correction"),
    )
    assert added.new_value == Decimal("5.25")

    removed = await record_adjustment(
        db_session,
        admin,
        employee_id,
        RecordAdjustmentRequest(balance_field=BalanceField.VAC_ROLLOVER, hours=Decimal("-5.25"), note="Payout"),
    )
    assert removed.new_value == Decimal("0.00")

    entries = await _entries(db_session, employee_id)
    assert [e.action_type for e in entries] == [AuditActionType.ADJUSTMENT, AuditActionType.ADJUSTMENT]
    assert "+2.25" in entries[0].note
    assert "Correction" in entries[0].note
    assert "-5.25" in entries[1].note


async def test_record_adjustment_negative_result_rejected(
    db_session: AsyncSession, admin: AuthContext, make_employee: MakeEmployee
) -> None:
    employee_id = await make_employee(sick_current="1")

    with pytest.raises(NegativeResultError) as exc_info:
        await record_adjustment(
            db_session,
            admin,
            employee_id,
            RecordAdjustmentRequest(balance_field=BalanceField.SICK_CURRENT, hours=Decimal("-1.01"), note="Too much"),
        )

    assert "Current: 1.00 hours" in exc_info.value.message
    balance = await get_employee_balance(db_session, employee_id)
    assert balance.sick_current == Decimal("1.00")


async def test_record_adjustment_zero_rejected(
    db_session: AsyncSession, admin: AuthContext, make_employee: MakeEmployee
) -> None:
    employee_id = await make_employee()

    with pytest.raises(InvalidAmountError):
        await record_adjustment(
            db_session,
            admin,
            employee_id,
            RecordAdjustmentRequest(balance_field=BalanceField.SICK_CURRENT, hours=Decimal("0"), note="Nothing"),
        )


# ---------------------------------------------------------------------------
# clear_balance
# ---------------------------------------------------------------------------


async def test_clear_sick_zeroes_both_sick_fields(
    db_session: AsyncSession, admin: AuthContext, make_employee: MakeEmployee
) -> None:
    employee_id = await make_employee(sick_current="3.33", sick_rollover="10", vac_current="4", vac_rollover="1")

    response = await clear_balance(db_session, admin, employee_id, ClearScope.SICK)

    assert response.balance.sick_current == 0
    assert response.balance.sick_rollover == 0
    assert response.balance.vac_current == Decimal("4.00")
    assert response.balance.vac_rollover == Decimal("1.00")
    assert response.cleared == {
        BalanceField.SICK_CURRENT: Decimal("3.33"),
        BalanceField.SICK_ROLLOVER: Decimal("10.00"),
    }

    entries = await _entries(db_session, employee_id)
    assert len(entries) == 1
    entry = entries[0]
    assert entry.action_type == AuditActionType.BALANCE_CLEARED
    assert entry.category == AuditCategory.ADJUSTMENT
    assert Decimal(str(entry.hours)) == Decimal("-13.33")
    assert entry.details_json is not None
    assert entry.details_json["deltas"] == {"sick_current": "-3.33", "sick_rollover": "-10.00"}


async def test_clear_all(db_session: AsyncSession, admin: AuthContext, make_employee: MakeEmployee) -> None:
    employee_id = await make_employee(sick_current="1", vac_rollover="2")

    response = await clear_balance(db_session, admin, employee_id, ClearScope.ALL)

    assert response.balance.sick_total == 0
    assert response.balance.vac_total == 0


async def test_clear_nothing_to_clear(db_session: AsyncSession, admin: AuthContext, make_employee: MakeEmployee) -> None:
    employee_id = await make_employee(sick_current="5")

    with pytest.raises(NothingToClearError):
        await clear_balance(db_session, admin, employee_id, ClearScope.VACATION)

    assert await _entries(db_session, employee_id) == []


# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------


async def test_api_get_balance(async_client: AsyncClient, make_employee: MakeEmployee) -> None:
    employee_id = await make_employee(sick_current="1.5", sick_rollover="2", vac_current="3")

    resp = await async_client.get(f"/employees/{employee_id}/balance", headers=ADMIN_HEADERS)

    assert resp.status_code == 200
    data = resp.json()
    assert Decimal(data["sick_total"]) == Decimal("3.50")
    assert Decimal(data["vac_total"]) == Decimal("3.00")


async def test_api_usage_and_overdraw(async_client: AsyncClient, make_employee: MakeEmployee) -> None:
    employee_id = await make_employee(vac_current="5")
    url = f"/employees/{employee_id}/usage"

    ok = await async_client.post(url, json={"balance_field": "vac_current", "hours": "3"}, headers=ADMIN_HEADERS)
    assert ok.status_code == 200
    assert Decimal(ok.json()["new_value"]) == Decimal("2.00")

    overdraw = await async_client.post(url, json={"balance_field": "vac_current", "hours": "3"}, headers=ADMIN_HEADERS)
    assert overdraw.status_code == 409
    body = overdraw.json()
    assert body["error"] == "InsufficientBalanceError"
    assert body["context"]["available"] == "2.00"

    balance = await async_client.get(f"/employees/{employee_id}/balance", headers=ADMIN_HEADERS)
    assert Decimal(balance.json()["vac_current"]) == Decimal("2.00")


async def test_api_usage_rejects_non_positive_hours(async_client: AsyncClient, make_employee: MakeEmployee) -> None:
    employee_id = await make_employee(vac_current="5")

    resp = await async_client.post(
        f"/employees/{employee_id}/usage",
        json={"balance_field": "vac_current", "hours": "0"},
        headers=ADMIN_HEADERS,
    )

    assert resp.status_code == 422


async def test_api_adjustment_negative_result(async_client: AsyncClient, make_employee: MakeEmployee) -> None:
    employee_id = await make_employee(sick_rollover="1")

    resp = await async_client.post(
        f"/employees/{employee_id}/adjustments",
        json={"balance_field": "sick_rollover", "hours": "-2", "note": "Oops"},
        headers=ADMIN_HEADERS,
    )

    assert resp.status_code == 409
    assert resp.json()["error"] == "NegativeResultError"


async def test_api_clear_defaults_to_all(async_client: AsyncClient, make_employee: MakeEmployee) -> None:
    employee_id = await make_employee(sick_current="1", vac_current="1")

    resp = await async_client.post(f"/employees/{employee_id}/clear", json={}, headers=ADMIN_HEADERS)

    assert resp.status_code == 200
    assert resp.json()["scope"] == "all"
    assert Decimal(resp.json()["balance"]["vac_total"]) == 0


async def test_api_unknown_employee_404(async_client: AsyncClient) -> None:
    resp = await async_client.get(
        "/employees/00000000-0000-0000-0000-00000000dead/balance",
        headers=ADMIN_HEADERS,
    )

    assert resp.status_code == 404
    assert resp.json()["error"] == "UnknownEmployeeError"


async def test_api_requires_admin(async_client: AsyncClient, make_employee: MakeEmployee) -> None:
    employee_id = await make_employee(vac_current="5")

    resp = await async_client.post(
        f"/employees/{employee_id}/usage",
        json={"balance_field": "vac_current", "hours": "1"},
        headers=EMPLOYEE_HEADERS,
    )

    assert resp.status_code == 403


async def test_api_requires_user_header(async_client: AsyncClient, make_employee: MakeEmployee) -> None:
    employee_id = await make_employee()

    resp = await async_client.get(f"/employees/{employee_id}/balance", headers={"X-Role": "admin"})

    assert resp.status_code == 422


async def test_api_unexpected_error_returns_json_500(
    session_factory: async_sessionmaker[AsyncSession],
    make_employee: MakeEmployee,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    employee_id = await make_employee(vac_current="5")

    async def _broken(*args: object, **kwargs: object) -> None:
        raise RuntimeError("disk full")

    monkeypatch.setattr(balance_module, "get_employee_for_update", _broken)

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    try:
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            with caplog.at_level(logging.ERROR, logger="pto_ledger.exceptions"):
                resp = await client.post(
                    f"/employees/{employee_id}/usage",
                    json={"balance_field": "vac_current", "hours": "1"},
                    headers=ADMIN_HEADERS,
                )
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 500
    assert resp.json() == {
        "error": "InternalServerError",
        "detail": "An unexpected error occurred",
        "status_code": 500,
        "context": None,
    }
    assert f"Unhandled error on POST /employees/{employee_id}/usage" in caplog.text


# ---------------------------------------------------------------------------
# Concurrent writers
# ---------------------------------------------------------------------------


def _take_write_lock_on_begin(engine: AsyncEngine) -> None:
    """Start every transaction with BEGIN IMMEDIATE.

    SQLite ignores FOR UPDATE; taking the write lock at BEGIN serializes
    concurrent writers the way row locks do on PostgreSQL.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection: object, connection_record: object) -> None:
        dbapi_connection.isolation_level = None  # type: ignore[attr-defined]

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


async def test_concurrent_usage_cannot_overdraw(file_engine: AsyncEngine, admin: AuthContext) -> None:
    _take_write_lock_on_begin(file_engine)
    factory = async_sessionmaker(file_engine, expire_on_commit=False)

    async with factory() as session:
        employee = Employee(full_name="Pat Parallel", hire_date=date(2024, 1, 15))
        session.add(employee)
        await session.flush()
        employee_id = employee.id
        session.add(EmployeeBalance(employee_id=employee_id, vac_current=Decimal("8")))
        await session.commit()

    async def _use_five_hours() -> object:
        async with factory() as session:
            return await record_usage(
                session,
                admin,
                employee_id,
                RecordUsageRequest(balance_field=BalanceField.VAC_CURRENT, hours=Decimal("5")),
            )

    outcomes = await asyncio.gather(_use_five_hours(), _use_five_hours(), return_exceptions=True)

    failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientBalanceError)

    async with factory() as session:
        balance = await get_employee_balance(session, employee_id)
        result = await session.execute(
            select(AuditEntry).where(col(AuditEntry.action_type) == AuditActionType.PTO_USAGE.value)
        )
        usage_entries = list(result.scalars().all())
    assert balance.vac_current == Decimal("3.00")
    assert len(usage_entries) == 1
