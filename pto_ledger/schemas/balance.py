# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from pto_ledger.models.enums import BalanceField, ClearScope

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """All four buckets for one employee."""

    employee_id: uuid.UUID
    sick_current: Decimal
    sick_rollover: Decimal
    vac_current: Decimal
    vac_rollover: Decimal
    sick_total: Decimal
    vac_total: Decimal
    updated_at: datetime | None
    version: int


class MutationResponse(BaseModel):
    """Outcome of one single-field mutation."""

    employee_id: uuid.UUID
    balance_field: BalanceField
    previous_value: Decimal
    new_value: Decimal
    applied_hours: Decimal
    balance: BalanceResponse


class ClearBalanceResponse(BaseModel):
    """Outcome of clearing a scope of buckets."""

    employee_id: uuid.UUID
    scope: ClearScope
    cleared: dict[BalanceField, Decimal]
    balance: BalanceResponse


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RecordUsageRequest(BaseModel):
    """Request body for recording PTO taken."""

    balance_field: BalanceField
    hours: Decimal = Field(gt=0, max_digits=10, decimal_places=2)


class RecordAdjustmentRequest(BaseModel):
    """Request body for a single signed administrative adjustment."""

    balance_field: BalanceField
    hours: Decimal = Field(
        max_digits=10,
        decimal_places=2,
        description="Signed hours: positive to add, negative to deduct",
    )
    note: str = Field(min_length=1, max_length=1000)


class ClearBalanceRequest(BaseModel):
    """Request body for clearing an employee's balance."""

    scope: ClearScope = ClearScope.ALL
