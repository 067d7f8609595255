"""Mass adjustment: one rule applied to one field across many employees, atomically."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from pto_ledger.exceptions import AppError, EmployeeInactiveError, InvalidAmountError, UnknownEmployeeError
from pto_ledger.models.balance import EmployeeBalance
from pto_ledger.models.base import quantize_hours
from pto_ledger.models.employee import Employee
from pto_ledger.models.enums import AdjustmentKind, AuditActionType, AuditCategory, BalanceField
from pto_ledger.schemas.adjustment import EmployeeAdjustmentResult, MassAdjustmentResponse
from pto_ledger.services.audit import format_hours
from pto_ledger.services.balance import (
    BalanceRule,
    Delta,
    DeltaClamped,
    MutationResult,
    SetTo,
    compute_new_value,
    mutate_field,
)
from pto_ledger.services.transaction import run_with_retry

if TYPE_CHECKING:
    import uuid
    from decimal import Decimal

    from sqlalchemy.ext.asyncio import AsyncSession

    from pto_ledger.schemas.adjustment import MassAdjustmentRequest
    from pto_ledger.schemas.auth import AuthContext

logger = logging.getLogger(__name__)


def build_rule(kind: AdjustmentKind, amount: Decimal) -> BalanceRule:
    """Translate an adjustment kind into a mutator rule, validating the amount.

    ``add`` and ``subtract`` need a positive amount; ``set`` accepts zero.
    """
    amount = quantize_hours(amount)
    if kind == AdjustmentKind.SET:
        if amount < 0:
            raise InvalidAmountError("Set amount must not be negative", amount)
        return SetTo(amount)
    if amount <= 0:
        raise InvalidAmountError("Amount must be greater than zero", amount)
    if kind == AdjustmentKind.ADD:
        return Delta(amount)
    return DeltaClamped(-amount)


async def _load_targets(
    session: AsyncSession,
    employee_ids: list[uuid.UUID],
    *,
    lock: bool,
) -> list[tuple[Employee, EmployeeBalance]]:
    """Load every targeted employee with their balance, failing on any ineligible id."""
    if not employee_ids:
        raise AppError("At least one employee must be selected", status_code=422)

    query = (
        select(Employee, EmployeeBalance)
        .join(EmployeeBalance, col(EmployeeBalance.employee_id) == col(Employee.id))
        .where(col(Employee.id).in_(employee_ids))
        .order_by(col(Employee.id))
    )
    if lock:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    found = {employee.id: (employee, balance) for employee, balance in result.all()}

    missing = [eid for eid in employee_ids if eid not in found]
    if missing:
        raise UnknownEmployeeError(missing)
    inactive = [eid for eid in employee_ids if not found[eid][0].is_active]
    if inactive:
        raise EmployeeInactiveError(inactive)

    return [found[eid] for eid in sorted(found)]


def _build_result(employee: Employee, previous: Decimal, new_value: Decimal) -> EmployeeAdjustmentResult:
    return EmployeeAdjustmentResult(
        employee_id=employee.id,
        full_name=employee.full_name,
        previous_value=previous,
        new_value=new_value,
        applied_hours=new_value - previous,
    )


async def preview_mass_adjustment(
    session: AsyncSession,
    payload: MassAdjustmentRequest,
) -> MassAdjustmentResponse:
    """Compute every employee's outcome, including floored subtractions, without writing."""
    field = BalanceField(payload.balance_field)
    rule = build_rule(payload.kind, payload.amount)
    targets = await _load_targets(session, payload.employee_ids, lock=False)

    items = []
    for employee, balance in targets:
        previous = quantize_hours(balance.get_field(field))
        items.append(_build_result(employee, previous, compute_new_value(previous, rule, field)))

    return MassAdjustmentResponse(
        balance_field=field,
        kind=payload.kind,
        amount=quantize_hours(payload.amount),
        effective_date=payload.effective_date,
        committed=False,
        count=len(items),
        items=items,
        message=f"Preview of {payload.kind.value} on {field.value} for {len(items)} employees",
    )


async def mass_adjust(
    session: AsyncSession,
    auth: AuthContext,
    payload: MassAdjustmentRequest,
) -> MassAdjustmentResponse:
    """Apply one adjustment rule to one field for every listed employee.

    Every listed employee must exist and be active when the rows are locked;
    otherwise the whole batch fails and nothing is written. Each employee gets
    one MASS_ADJUSTMENT audit entry with the delta actually applied.
    """
    field = BalanceField(payload.balance_field)
    kind = AdjustmentKind(payload.kind)
    rule = build_rule(kind, payload.amount)
    amount = quantize_hours(payload.amount)
    reason = payload.reason.strip()
    details = {
        "kind": kind.value,
        "amount": str(amount),
        "reason": reason,
        "effective_date": payload.effective_date.isoformat(),
        "batch_size": len(payload.employee_ids),
    }

    async def _apply() -> list[EmployeeAdjustmentResult]:
        targets = await _load_targets(session, payload.employee_ids, lock=True)
        items = []
        for employee, balance in targets:

            def _note(results: dict[BalanceField, MutationResult], name: str = employee.full_name) -> str:
                applied = results[field].applied
                return (
                    f'Mass adjustment ({kind.value}) {format_hours(applied)} hours to {field.value} for "{name}": '
                    f"{reason} [effective {payload.effective_date.isoformat()}]"
                )

            result = await mutate_field(
                session,
                balance,
                field,
                rule,
                action_type=AuditActionType.MASS_ADJUSTMENT,
                category=AuditCategory.ADJUSTMENT,
                note=_note,
                actor_id=auth.user_id,
                details=details,
            )
            items.append(_build_result(employee, result.previous, result.new_value))

        return items

    items = await run_with_retry(session, _apply, description="mass adjustment")
    logger.info(
        "Mass adjustment %s %s on %s applied to %d employees",
        kind.value,
        amount,
        field.value,
        len(items),
    )
    return MassAdjustmentResponse(
        balance_field=field,
        kind=kind,
        amount=amount,
        effective_date=payload.effective_date,
        committed=True,
        count=len(items),
        items=items,
        message=f"Adjusted {field.value} for {len(items)} employees",
    )
