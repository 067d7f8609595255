# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from pto_ledger.models.enums import AdjustmentKind, BalanceField


class MassAdjustmentRequest(BaseModel):
    """Request body for POST /mass-adjustments and its preview."""

    employee_ids: list[uuid.UUID] = Field(min_length=1)
    balance_field: BalanceField
    kind: AdjustmentKind
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    reason: str = Field(min_length=1, max_length=1000)
    effective_date: date = Field(default_factory=date.today)

    @field_validator("reason")
    @classmethod
    def _strip_reason(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "reason must not be blank"
            raise ValueError(msg)
        return value

    @field_validator("employee_ids")
    @classmethod
    def _dedupe_ids(cls, value: list[uuid.UUID]) -> list[uuid.UUID]:
        return list(dict.fromkeys(value))


class EmployeeAdjustmentResult(BaseModel):
    """Per-employee outcome of a mass adjustment (or its preview)."""

    employee_id: uuid.UUID
    full_name: str
    previous_value: Decimal
    new_value: Decimal
    applied_hours: Decimal


class MassAdjustmentResponse(BaseModel):
    """Summary of a committed or previewed mass adjustment."""

    balance_field: BalanceField
    kind: AdjustmentKind
    amount: Decimal
    effective_date: date
    committed: bool
    count: int
    items: list[EmployeeAdjustmentResult]
    message: str
