# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from pto_ledger.api.deps import AdminDep, require_admin
from pto_ledger.db import SessionDep
from pto_ledger.schemas.audit import ReconciliationResponse
from pto_ledger.schemas.balance import (
    BalanceResponse,
    ClearBalanceRequest,
    ClearBalanceResponse,
    MutationResponse,
    RecordAdjustmentRequest,
    RecordUsageRequest,
)
from pto_ledger.services import audit as audit_service
from pto_ledger.services import balance as balance_service

employee_balance_router = APIRouter(
    prefix="/employees/{employee_id}",
    tags=["balances"],
    dependencies=[Depends(require_admin)],
)


@employee_balance_router.get("/balance", response_model=BalanceResponse)
async def get_employee_balance(
    employee_id: uuid.UUID,
    session: SessionDep,
) -> BalanceResponse:
    """Get all four buckets for an employee."""
    return await balance_service.get_employee_balance(session, employee_id)


@employee_balance_router.post("/usage", response_model=MutationResponse)
async def record_usage(
    employee_id: uuid.UUID,
    payload: RecordUsageRequest,
    session: SessionDep,
    auth: AdminDep,
) -> MutationResponse:
    """Deduct PTO taken from one bucket."""
    return await balance_service.record_usage(session, auth, employee_id, payload)


@employee_balance_router.post("/adjustments", response_model=MutationResponse)
async def record_adjustment(
    employee_id: uuid.UUID,
    payload: RecordAdjustmentRequest,
    session: SessionDep,
    auth: AdminDep,
) -> MutationResponse:
    """Apply a signed administrative adjustment to one bucket."""
    return await balance_service.record_adjustment(session, auth, employee_id, payload)


@employee_balance_router.post("/clear", response_model=ClearBalanceResponse)
async def clear_balance(
    employee_id: uuid.UUID,
    payload: ClearBalanceRequest,
    session: SessionDep,
    auth: AdminDep,
) -> ClearBalanceResponse:
    """Zero the sick, vacation, or all buckets of an employee."""
    return await balance_service.clear_balance(session, auth, employee_id, payload.scope)


@employee_balance_router.get("/reconciliation", response_model=ReconciliationResponse)
async def reconcile_employee(
    employee_id: uuid.UUID,
    session: SessionDep,
) -> ReconciliationResponse:
    """Compare the replayed audit trail with the stored balance."""
    return await audit_service.reconcile_employee(session, employee_id)
