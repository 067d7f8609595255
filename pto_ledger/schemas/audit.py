# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from pto_ledger.models.enums import AuditActionType, AuditCategory, BalanceField


class AuditEntryResponse(BaseModel):
    """A single audit entry, with the employee's name when still on the roster."""

    id: int
    created_at: datetime
    employee_id: uuid.UUID | None
    employee_name: str | None
    actor_id: uuid.UUID | None
    action_type: str
    category: str
    balance_field: str | None
    hours: Decimal | None
    note: str
    details_json: dict[str, Any] | None


class AuditListResponse(BaseModel):
    """A page of audit entries, newest first."""

    items: list[AuditEntryResponse]
    total: int
    offset: int
    limit: int
    next_before_id: int | None = None


class AuditLogFilter(BaseModel):
    """Optional filters for listing the audit log."""

    employee_id: uuid.UUID | None = None
    category: AuditCategory | None = None
    action_type: AuditActionType | None = None
    balance_field: BalanceField | None = None
    search: str | None = Field(default=None, max_length=255)
    before_id: int | None = Field(default=None, ge=1)


class FieldReconciliation(BaseModel):
    """Audit replay vs. stored value for one balance field."""

    balance_field: BalanceField
    audit_total: Decimal
    stored: Decimal
    difference: Decimal


class ReconciliationResponse(BaseModel):
    """Reconciliation of one employee's audit trail against their balance."""

    employee_id: uuid.UUID
    entries_replayed: int
    fields: list[FieldReconciliation]
    balanced: bool
