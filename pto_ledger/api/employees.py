# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status

from pto_ledger.api.deps import AdminDep, require_admin
from pto_ledger.db import SessionDep
from pto_ledger.schemas.employee import (
    CreateEmployeeRequest,
    EmployeeListResponse,
    EmployeeResponse,
    EmployeeWithBalanceResponse,
)
from pto_ledger.services import employee as employee_service

employees_router = APIRouter(
    prefix="/employees",
    tags=["employees"],
    dependencies=[Depends(require_admin)],
)


@employees_router.post("", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED)
async def register_employee(
    payload: CreateEmployeeRequest,
    session: SessionDep,
    auth: AdminDep,
) -> EmployeeResponse:
    """Add an employee to the roster with a zeroed balance."""
    return await employee_service.register_employee(session, auth, payload)


@employees_router.get("", response_model=EmployeeListResponse)
async def list_employees(
    session: SessionDep,
    active_only: bool = Query(default=False),
) -> EmployeeListResponse:
    """List employees with their balances."""
    return await employee_service.list_employees(session, active_only=active_only)


@employees_router.get("/{employee_id}", response_model=EmployeeWithBalanceResponse)
async def get_employee(
    employee_id: uuid.UUID,
    session: SessionDep,
) -> EmployeeWithBalanceResponse:
    """Get one employee with their balance."""
    return await employee_service.get_employee(session, employee_id)


@employees_router.post("/{employee_id}/activate", response_model=EmployeeResponse)
async def activate_employee(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> EmployeeResponse:
    """Return an employee to the active roster."""
    return await employee_service.set_employee_active(session, auth, employee_id, active=True)


@employees_router.post("/{employee_id}/deactivate", response_model=EmployeeResponse)
async def deactivate_employee(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> EmployeeResponse:
    """Exclude an employee from accruals, rollovers and mass adjustments."""
    return await employee_service.set_employee_active(session, auth, employee_id, active=False)


@employees_router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def purge_employee(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> Response:
    """Delete an employee and their balance; audit history is kept."""
    await employee_service.purge_employee(session, auth, employee_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
