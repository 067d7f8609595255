# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from pto_ledger.schemas.balance import BalanceResponse


class CreateEmployeeRequest(BaseModel):
    """Request body for registering an employee."""

    full_name: str = Field(min_length=1, max_length=255)
    hire_date: date


class EmployeeResponse(BaseModel):
    """Response schema for an employee."""

    id: uuid.UUID
    full_name: str
    hire_date: date
    is_active: bool
    created_at: datetime


class EmployeeWithBalanceResponse(EmployeeResponse):
    """Employee joined with its balance row."""

    balance: BalanceResponse | None


class EmployeeListResponse(BaseModel):
    """List of employees with balances."""

    items: list[EmployeeWithBalanceResponse]
    total: int
