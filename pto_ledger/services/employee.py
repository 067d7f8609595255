# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlmodel import col

from pto_ledger.exceptions import UnknownEmployeeError
from pto_ledger.models.balance import EmployeeBalance
from pto_ledger.models.employee import Employee
from pto_ledger.models.enums import AuditActionType, AuditCategory
from pto_ledger.schemas.employee import EmployeeListResponse, EmployeeResponse, EmployeeWithBalanceResponse
from pto_ledger.services.audit import detach_employee_entries, write_audit_entry
from pto_ledger.services.balance import build_balance_response
from pto_ledger.services.transaction import run_with_retry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from pto_ledger.schemas.auth import AuthContext
    from pto_ledger.schemas.employee import CreateEmployeeRequest

logger = logging.getLogger(__name__)


def _build_employee_response(employee: Employee) -> EmployeeResponse:
    return EmployeeResponse(
        id=employee.id,
        full_name=employee.full_name,
        hire_date=employee.hire_date,
        is_active=employee.is_active,
        created_at=employee.created_at,
    )


def _build_with_balance(employee: Employee, balance: EmployeeBalance | None) -> EmployeeWithBalanceResponse:
    return EmployeeWithBalanceResponse(
        **_build_employee_response(employee).model_dump(),
        balance=build_balance_response(balance) if balance is not None else None,
    )


async def _get_employee_for_update(session: AsyncSession, employee_id: uuid.UUID) -> Employee:
    result = await session.execute(
        select(Employee)
        .where(col(Employee.id) == employee_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    employee = result.scalar_one_or_none()
    if employee is None:
        raise UnknownEmployeeError([employee_id])
    return employee


async def register_employee(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateEmployeeRequest,
) -> EmployeeResponse:
    """Add an employee to the roster with an all-zero balance row."""
    full_name = payload.full_name.strip()

    async def _create() -> EmployeeResponse:
        employee = Employee(full_name=full_name, hire_date=payload.hire_date)
        session.add(employee)
        await session.flush()
        session.add(EmployeeBalance(employee_id=employee.id))
        await write_audit_entry(
            session,
            action_type=AuditActionType.EMPLOYEE_CREATED,
            category=AuditCategory.EMPLOYEE,
            note=f'Created employee "{full_name}" (hired {payload.hire_date.isoformat()})',
            employee_id=employee.id,
            actor_id=auth.user_id,
            details={"hire_date": payload.hire_date.isoformat()},
        )
        await session.flush()
        return _build_employee_response(employee)

    response = await run_with_retry(session, _create, description="register_employee")
    logger.info("Registered employee=%s", response.id)
    return response


async def get_employee(session: AsyncSession, employee_id: uuid.UUID) -> EmployeeWithBalanceResponse:
    """Read one employee together with their balance."""
    employee = await session.get(Employee, employee_id)
    if employee is None:
        raise UnknownEmployeeError([employee_id])
    balance = await session.get(EmployeeBalance, employee_id)
    return _build_with_balance(employee, balance)


async def list_employees(session: AsyncSession, *, active_only: bool = False) -> EmployeeListResponse:
    """List the roster with balances, ordered by name."""
    query = select(Employee, EmployeeBalance).outerjoin(
        EmployeeBalance, col(EmployeeBalance.employee_id) == col(Employee.id)
    )
    if active_only:
        query = query.where(col(Employee.is_active).is_(True))
    result = await session.execute(query.order_by(col(Employee.full_name), col(Employee.id)))
    items = [_build_with_balance(employee, balance) for employee, balance in result.all()]
    return EmployeeListResponse(items=items, total=len(items))


async def set_employee_active(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    *,
    active: bool,
) -> EmployeeResponse:
    """Activate or deactivate an employee. Balances are left untouched."""

    async def _toggle() -> EmployeeResponse:
        employee = await _get_employee_for_update(session, employee_id)
        if employee.is_active == active:
            return _build_employee_response(employee)

        employee.is_active = active
        verb = "Activated" if active else "Deactivated"
        await write_audit_entry(
            session,
            action_type=AuditActionType.EMPLOYEE_ACTIVATED if active else AuditActionType.EMPLOYEE_DEACTIVATED,
            category=AuditCategory.EMPLOYEE,
            note=f'{verb} employee "{employee.full_name}"',
            employee_id=employee.id,
            actor_id=auth.user_id,
        )
        await session.flush()
        return _build_employee_response(employee)

    response = await run_with_retry(session, _toggle, description="set_employee_active")
    logger.info("Employee=%s active=%s", employee_id, response.is_active)
    return response


async def purge_employee(session: AsyncSession, auth: AuthContext, employee_id: uuid.UUID) -> None:
    """Delete an employee and their balance, keeping their audit history.

    Existing entries lose their employee reference; the deletion itself is
    recorded with the employee's name in the note.
    """

    async def _purge() -> None:
        employee = await _get_employee_for_update(session, employee_id)
        full_name = employee.full_name
        detached = await detach_employee_entries(session, employee_id)
        await session.execute(delete(EmployeeBalance).where(col(EmployeeBalance.employee_id) == employee_id))
        await session.delete(employee)
        await session.flush()
        await write_audit_entry(
            session,
            action_type=AuditActionType.EMPLOYEE_DELETED,
            category=AuditCategory.EMPLOYEE,
            note=f'Deleted employee "{full_name}"',
            actor_id=auth.user_id,
            details={"employee_id": str(employee_id), "detached_entries": detached},
        )
        await session.flush()

    await run_with_retry(session, _purge, description="purge_employee")
    logger.info("Purged employee=%s", employee_id)
