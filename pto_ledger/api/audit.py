# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from pto_ledger.api.deps import require_admin
from pto_ledger.config import get_settings
from pto_ledger.db import SessionDep
from pto_ledger.models.enums import AuditActionType, AuditCategory, BalanceField
from pto_ledger.schemas.audit import AuditListResponse, AuditLogFilter
from pto_ledger.services.audit import list_audit_log

audit_router = APIRouter(
    prefix="/audit-log",
    tags=["audit"],
    dependencies=[Depends(require_admin)],
)


@audit_router.get("", response_model=AuditListResponse)
async def get_audit_log(
    session: SessionDep,
    employee_id: uuid.UUID | None = Query(default=None),
    category: AuditCategory | None = Query(default=None),
    action_type: AuditActionType | None = Query(default=None),
    balance_field: BalanceField | None = Query(default=None),
    search: str | None = Query(default=None, max_length=255),
    before_id: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    limit: int | None = Query(default=None, ge=1),
) -> AuditListResponse:
    """List audit entries newest first.

    Page with ``offset``, or pass the previous page's ``next_before_id`` as
    ``before_id`` for a cursor that is unaffected by new entries.
    """
    settings = get_settings()
    effective_limit = min(limit or settings.audit_log_default_limit, settings.audit_log_max_limit)
    filters = AuditLogFilter(
        employee_id=employee_id,
        category=category,
        action_type=action_type,
        balance_field=balance_field,
        search=search,
        before_id=before_id,
    )
    return await list_audit_log(session, limit=effective_limit, offset=offset, filters=filters)
