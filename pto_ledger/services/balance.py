"""Balance mutator and the single-employee operations built on it."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlmodel import col

from pto_ledger.exceptions import (
    EmployeeInactiveError,
    InsufficientBalanceError,
    InvalidAmountError,
    NegativeResultError,
    NothingToClearError,
    UnknownEmployeeError,
)
from pto_ledger.models.balance import EmployeeBalance
from pto_ledger.models.base import ZERO_HOURS, quantize_hours
from pto_ledger.models.employee import Employee
from pto_ledger.models.enums import AuditActionType, AuditCategory, BalanceField, ClearScope
from pto_ledger.schemas.balance import BalanceResponse, ClearBalanceResponse, MutationResponse
from pto_ledger.services.audit import format_hours, write_audit_entry
from pto_ledger.services.transaction import run_with_retry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from pto_ledger.schemas.auth import AuthContext
    from pto_ledger.schemas.balance import RecordAdjustmentRequest, RecordUsageRequest

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Delta:
    """Add ``amount`` (may be negative); the result must not be negative."""

    amount: Decimal


@dataclass(frozen=True)
class DeltaClamped:
    """Add ``amount``, flooring the result at zero."""

    amount: Decimal


@dataclass(frozen=True)
class SetTo:
    """Override the field with an absolute, non-negative value."""

    amount: Decimal


BalanceRule = Delta | DeltaClamped | SetTo


@dataclass(frozen=True)
class MutationResult:
    """What a rule did to one field."""

    employee_id: uuid.UUID
    field: BalanceField
    previous: Decimal
    new_value: Decimal

    @property
    def applied(self) -> Decimal:
        return self.new_value - self.previous


NoteBuilder = Callable[[dict[BalanceField, MutationResult]], str]


def compute_new_value(current: Decimal, rule: BalanceRule, field: BalanceField) -> Decimal:
    """Pure rule evaluation, shared by the write path and previews."""
    current = quantize_hours(current)
    amount = quantize_hours(rule.amount)

    if isinstance(rule, Delta):
        new_value = current + amount
        if new_value < 0:
            raise InsufficientBalanceError(field.value, current, -amount)
        return new_value

    if isinstance(rule, DeltaClamped):
        return max(current + amount, ZERO_HOURS)

    if amount < 0:
        raise InvalidAmountError("Balance cannot be set to a negative value", amount)
    return amount


# ---------------------------------------------------------------------------
# Row access
# ---------------------------------------------------------------------------


def _now_utc() -> datetime:
    return datetime.now(UTC)


def build_balance_response(balance: EmployeeBalance) -> BalanceResponse:
    """Map a balance row to its response schema."""
    values = {f: quantize_hours(balance.get_field(f)) for f in BalanceField}
    return BalanceResponse(
        employee_id=balance.employee_id,
        sick_current=values[BalanceField.SICK_CURRENT],
        sick_rollover=values[BalanceField.SICK_ROLLOVER],
        vac_current=values[BalanceField.VAC_CURRENT],
        vac_rollover=values[BalanceField.VAC_ROLLOVER],
        sick_total=values[BalanceField.SICK_CURRENT] + values[BalanceField.SICK_ROLLOVER],
        vac_total=values[BalanceField.VAC_CURRENT] + values[BalanceField.VAC_ROLLOVER],
        updated_at=balance.updated_at,
        version=balance.version,
    )


async def get_employee_for_update(
    session: AsyncSession,
    employee_id: uuid.UUID,
    *,
    require_active: bool = True,
) -> tuple[Employee, EmployeeBalance]:
    """Lock an employee together with their balance row."""
    result = await session.execute(
        select(Employee, EmployeeBalance)
        .join(EmployeeBalance, col(EmployeeBalance.employee_id) == col(Employee.id))
        .where(col(Employee.id) == employee_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    row = result.one_or_none()
    if row is None:
        raise UnknownEmployeeError([employee_id])
    employee, balance = row
    if require_active and not employee.is_active:
        raise EmployeeInactiveError([employee_id])
    return employee, balance


async def lock_active_balances(session: AsyncSession) -> list[tuple[Employee, EmployeeBalance]]:
    """Lock every active employee and their balance, in primary-key order."""
    result = await session.execute(
        select(Employee, EmployeeBalance)
        .join(EmployeeBalance, col(EmployeeBalance.employee_id) == col(Employee.id))
        .where(col(Employee.is_active).is_(True))
        .order_by(col(Employee.id))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return [(employee, balance) for employee, balance in result.all()]


async def get_employee_balance(session: AsyncSession, employee_id: uuid.UUID) -> BalanceResponse:
    """Read one employee's balance."""
    balance = await session.get(EmployeeBalance, employee_id)
    if balance is None:
        raise UnknownEmployeeError([employee_id])
    return build_balance_response(balance)


# ---------------------------------------------------------------------------
# Mutator
# ---------------------------------------------------------------------------


async def mutate_fields(
    session: AsyncSession,
    balance: EmployeeBalance,
    rules: dict[BalanceField, BalanceRule],
    *,
    action_type: AuditActionType,
    category: AuditCategory,
    note: str | NoteBuilder,
    actor_id: uuid.UUID | None = None,
    balance_field: BalanceField | None = None,
    hours: Decimal | None = None,
    details: dict[str, Any] | None = None,
) -> dict[BalanceField, MutationResult]:
    """Apply rules to fields of an already locked balance row and write one audit entry.

    Every rule is evaluated before anything is written, so a rejected rule
    leaves the row untouched. The audit entry records the deltas actually
    applied, which differ from the requested amounts when a rule clamps.
    ``hours`` defaults to the sum of those deltas.
    """
    results: dict[BalanceField, MutationResult] = {}
    for field, rule in rules.items():
        previous = quantize_hours(balance.get_field(field))
        results[field] = MutationResult(
            employee_id=balance.employee_id,
            field=field,
            previous=previous,
            new_value=compute_new_value(previous, rule, field),
        )

    for field, outcome in results.items():
        balance.set_field(field, outcome.new_value)
    balance.version += 1
    balance.updated_at = _now_utc()

    deltas = {field: outcome.applied for field, outcome in results.items()}
    if hours is None:
        hours = sum(deltas.values(), ZERO_HOURS)
    if balance_field is None and len(rules) == 1:
        balance_field = next(iter(rules))

    await write_audit_entry(
        session,
        action_type=action_type,
        category=category,
        note=note(results) if callable(note) else note,
        employee_id=balance.employee_id,
        actor_id=actor_id,
        balance_field=balance_field,
        hours=hours,
        deltas=deltas,
        details=details,
    )
    await session.flush()
    return results


async def mutate_field(
    session: AsyncSession,
    balance: EmployeeBalance,
    field: BalanceField,
    rule: BalanceRule,
    *,
    action_type: AuditActionType,
    category: AuditCategory,
    note: str | NoteBuilder,
    actor_id: uuid.UUID | None = None,
    details: dict[str, Any] | None = None,
) -> MutationResult:
    """Single-field form of ``mutate_fields``."""
    results = await mutate_fields(
        session,
        balance,
        {field: rule},
        action_type=action_type,
        category=category,
        note=note,
        actor_id=actor_id,
        details=details,
    )
    return results[field]


def _build_mutation_response(result: MutationResult, balance: EmployeeBalance) -> MutationResponse:
    return MutationResponse(
        employee_id=result.employee_id,
        balance_field=result.field,
        previous_value=result.previous,
        new_value=result.new_value,
        applied_hours=result.applied,
        balance=build_balance_response(balance),
    )


# ---------------------------------------------------------------------------
# Write path: usage, adjustments, clear
# ---------------------------------------------------------------------------


async def record_usage(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    payload: RecordUsageRequest,
) -> MutationResponse:
    """Deduct hours taken from one bucket; never lets it go below zero."""
    hours = quantize_hours(payload.hours)
    if hours <= 0:
        raise InvalidAmountError("Usage hours must be greater than zero", hours)
    field = BalanceField(payload.balance_field)

    async def _apply() -> MutationResponse:
        employee, balance = await get_employee_for_update(session, employee_id)
        result = await mutate_field(
            session,
            balance,
            field,
            Delta(-hours),
            action_type=AuditActionType.PTO_USAGE,
            category=AuditCategory.USAGE,
            note=f'Used {hours:.2f} hours from {field.value} for "{employee.full_name}"',
            actor_id=auth.user_id,
        )
        return _build_mutation_response(result, balance)

    response = await run_with_retry(session, _apply, description="record_usage")
    logger.info("Recorded %s hours of usage on %s for employee=%s", hours, field.value, employee_id)
    return response


async def record_adjustment(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    payload: RecordAdjustmentRequest,
) -> MutationResponse:
    """Apply a signed adjustment; rejected if the result would be negative."""
    hours = quantize_hours(payload.hours)
    if hours == 0:
        raise InvalidAmountError("Adjustment hours must not be zero", hours)
    field = BalanceField(payload.balance_field)
    note_text = payload.note.strip()

    async def _apply() -> MutationResponse:
        employee, balance = await get_employee_for_update(session, employee_id)
        try:
            result = await mutate_field(
                session,
                balance,
                field,
                Delta(hours),
                action_type=AuditActionType.ADJUSTMENT,
                category=AuditCategory.ADJUSTMENT,
                note=f'Adjustment {format_hours(hours)} hours to {field.value} for "{employee.full_name}": {note_text}',
                actor_id=auth.user_id,
            )
        except InsufficientBalanceError as exc:
            raise NegativeResultError(field.value, quantize_hours(balance.get_field(field)), hours) from exc
        return _build_mutation_response(result, balance)

    response = await run_with_retry(session, _apply, description="record_adjustment")
    logger.info("Adjusted %s by %s for employee=%s", field.value, hours, employee_id)
    return response


async def clear_balance(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    scope: ClearScope,
) -> ClearBalanceResponse:
    """Zero every field in ``scope`` and record it as one adjustment entry."""
    scope = ClearScope(scope)

    async def _apply() -> ClearBalanceResponse:
        employee, balance = await get_employee_for_update(session, employee_id)
        if all(balance.get_field(f) == 0 for f in scope.fields):
            raise NothingToClearError(scope.value)

        def _note(results: dict[BalanceField, MutationResult]) -> str:
            parts = ", ".join(f"{f.value} {format_hours(r.applied)}" for f, r in results.items())
            return f'Cleared {scope.value} balance for "{employee.full_name}" ({parts})'

        results = await mutate_fields(
            session,
            balance,
            dict.fromkeys(scope.fields, SetTo(ZERO_HOURS)),
            action_type=AuditActionType.BALANCE_CLEARED,
            category=AuditCategory.ADJUSTMENT,
            note=_note,
            actor_id=auth.user_id,
            details={"scope": scope.value},
        )
        return ClearBalanceResponse(
            employee_id=employee_id,
            scope=scope,
            cleared={f: -r.applied for f, r in results.items()},
            balance=build_balance_response(balance),
        )

    response = await run_with_retry(session, _apply, description="clear_balance")
    logger.info("Cleared %s balance for employee=%s", scope.value, employee_id)
    return response
