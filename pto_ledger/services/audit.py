"""Audit recorder: append-only entries, listing, and balance reconciliation."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_, select, update
from sqlmodel import col

from pto_ledger.exceptions import UnknownEmployeeError
from pto_ledger.models.audit import AuditEntry
from pto_ledger.models.balance import EmployeeBalance
from pto_ledger.models.base import ZERO_HOURS, quantize_hours
from pto_ledger.models.employee import Employee
from pto_ledger.models.enums import BalanceField
from pto_ledger.schemas.audit import (
    AuditEntryResponse,
    AuditListResponse,
    FieldReconciliation,
    ReconciliationResponse,
)

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from pto_ledger.models.enums import AuditActionType, AuditCategory
    from pto_ledger.schemas.audit import AuditLogFilter


def format_hours(value: Decimal) -> str:
    """Render a signed hours amount the way notes show it, e.g. ``+5.00``."""
    return f"{quantize_hours(value):+.2f}"


async def write_audit_entry(
    session: AsyncSession,
    *,
    action_type: AuditActionType,
    category: AuditCategory,
    note: str,
    employee_id: uuid.UUID | None = None,
    actor_id: uuid.UUID | None = None,
    balance_field: BalanceField | None = None,
    hours: Decimal | None = None,
    deltas: dict[BalanceField, Decimal] | None = None,
    details: dict[str, Any] | None = None,
) -> AuditEntry:
    """Append an immutable audit entry within the caller's transaction.

    ``deltas`` holds the signed change actually applied to each touched field
    and is what reconciliation replays.
    """
    details_json: dict[str, Any] = dict(details or {})
    if deltas:
        details_json["deltas"] = {BalanceField(k).value: str(quantize_hours(v)) for k, v in deltas.items()}

    entry = AuditEntry(
        employee_id=employee_id,
        actor_id=actor_id,
        action_type=action_type.value,
        category=category.value,
        balance_field=balance_field.value if balance_field is not None else None,
        hours=quantize_hours(hours) if hours is not None else None,
        note=note,
        details_json=details_json or None,
    )
    session.add(entry)
    return entry


async def detach_employee_entries(session: AsyncSession, employee_id: uuid.UUID) -> int:
    """Null out the employee reference on every entry before the employee is purged.

    This is the only update ever issued against the audit table.
    """
    result = await session.execute(
        update(AuditEntry).where(col(AuditEntry.employee_id) == employee_id).values(employee_id=None)
    )
    return result.rowcount or 0  # type: ignore[attr-defined]


def _build_entry_response(entry: AuditEntry, employee_name: str | None) -> AuditEntryResponse:
    return AuditEntryResponse(
        id=entry.id or 0,
        created_at=entry.created_at,
        employee_id=entry.employee_id,
        employee_name=employee_name,
        actor_id=entry.actor_id,
        action_type=entry.action_type,
        category=entry.category,
        balance_field=entry.balance_field,
        hours=entry.hours,
        note=entry.note,
        details_json=entry.details_json,
    )


async def list_audit_log(
    session: AsyncSession,
    *,
    limit: int,
    offset: int = 0,
    filters: AuditLogFilter | None = None,
) -> AuditListResponse:
    """List audit entries newest first.

    Pages either by ``offset`` or, for a stable cursor while new entries are
    being appended, by ``filters.before_id``.
    """
    conditions = []
    if filters is not None:
        if filters.employee_id is not None:
            conditions.append(col(AuditEntry.employee_id) == filters.employee_id)
        if filters.category is not None:
            conditions.append(col(AuditEntry.category) == filters.category.value)
        if filters.action_type is not None:
            conditions.append(col(AuditEntry.action_type) == filters.action_type.value)
        if filters.balance_field is not None:
            conditions.append(col(AuditEntry.balance_field) == filters.balance_field.value)
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            conditions.append(
                or_(
                    col(AuditEntry.note).ilike(pattern),
                    col(AuditEntry.action_type).ilike(pattern),
                    col(AuditEntry.category).ilike(pattern),
                    col(Employee.full_name).ilike(pattern),
                )
            )

    count_conditions = list(conditions)
    if filters is not None and filters.before_id is not None:
        conditions.append(col(AuditEntry.id) < filters.before_id)

    count_result = await session.execute(
        select(func.count())
        .select_from(AuditEntry)
        .outerjoin(Employee, col(AuditEntry.employee_id) == col(Employee.id))
        .where(*count_conditions)
    )
    total = count_result.scalar_one()

    rows_result = await session.execute(
        select(AuditEntry, col(Employee.full_name))
        .outerjoin(Employee, col(AuditEntry.employee_id) == col(Employee.id))
        .where(*conditions)
        .order_by(col(AuditEntry.id).desc())
        .offset(offset)
        .limit(limit)
    )
    rows = list(rows_result.all())
    items = [_build_entry_response(entry, name) for entry, name in rows]

    return AuditListResponse(
        items=items,
        total=total,
        offset=offset,
        limit=limit,
        next_before_id=items[-1].id if len(items) == limit else None,
    )


def replay_deltas(entries: list[AuditEntry]) -> dict[BalanceField, Decimal]:
    """Sum the per-field deltas recorded on entries, in creation order."""
    totals = dict.fromkeys(BalanceField, ZERO_HOURS)
    for entry in entries:
        deltas = (entry.details_json or {}).get("deltas") or {}
        for key, value in deltas.items():
            field = BalanceField(key)
            totals[field] = totals[field] + Decimal(value)
    return totals


async def reconcile_employee(session: AsyncSession, employee_id: uuid.UUID) -> ReconciliationResponse:
    """Replay an employee's audit history and compare it with the stored balance."""
    balance = await session.get(EmployeeBalance, employee_id)
    if balance is None:
        raise UnknownEmployeeError([employee_id])

    result = await session.execute(
        select(AuditEntry).where(col(AuditEntry.employee_id) == employee_id).order_by(col(AuditEntry.id))
    )
    entries = list(result.scalars().all())
    totals = replay_deltas(entries)

    fields = []
    for field in BalanceField:
        stored = quantize_hours(balance.get_field(field))
        audit_total = quantize_hours(totals[field])
        fields.append(
            FieldReconciliation(
                balance_field=field,
                audit_total=audit_total,
                stored=stored,
                difference=stored - audit_total,
            )
        )

    return ReconciliationResponse(
        employee_id=employee_id,
        entries_replayed=len(entries),
        fields=fields,
        balanced=all(f.difference == 0 for f in fields),
    )
