"""Year-end rollover: folds every active employee's current buckets into rollover.

Rollover accumulates across years. When ``rollover_cap_hours`` is configured
each rollover bucket is capped after the move and the excess is forfeited;
the forfeited amount is recorded on the same audit entry.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from pto_ledger.config import get_settings
from pto_ledger.models.base import ZERO_HOURS, quantize_hours
from pto_ledger.models.enums import ROLLOVER_PAIRS, AuditActionType, AuditCategory, PeriodJob
from pto_ledger.schemas.accrual import PeriodRunResponse
from pto_ledger.services.audit import format_hours
from pto_ledger.services.balance import SetTo, lock_active_balances, mutate_fields
from pto_ledger.services.period import check_and_mark, year_period_key
from pto_ledger.services.transaction import run_with_retry

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def compute_rollover(
    current: Decimal,
    rollover: Decimal,
    cap: Decimal | None,
) -> tuple[Decimal, Decimal]:
    """Return (new_rollover, forfeited) for moving ``current`` into ``rollover``."""
    combined = quantize_hours(current) + quantize_hours(rollover)
    if cap is None:
        return combined, ZERO_HOURS
    kept = min(combined, quantize_hours(cap))
    return kept, combined - kept


async def run_year_end_rollover(
    session: AsyncSession,
    *,
    actor_id: uuid.UUID | None,
    forced: bool = False,
    today: date | None = None,
    year: int | None = None,
) -> PeriodRunResponse:
    """Move current sick and vacation hours into the rollover buckets.

    Runs at most once per calendar year unless ``forced``. The run is keyed
    by ``year`` when given (the year being closed), otherwise by the year of
    ``today``. Writes one
    ROLLOVER audit entry per employee per leave category with a non-zero
    current bucket; the entry's deltas carry both the negative current and
    the positive rollover change. All-or-nothing, like the monthly accrual.
    """
    if today is None:
        today = datetime.now(UTC).date()
    period = f"{year:04d}" if year is not None else year_period_key(today)
    cap = get_settings().rollover_cap_hours

    async def _run() -> PeriodRunResponse:
        decision = await check_and_mark(
            session,
            PeriodJob.YEARLY_ROLLOVER,
            period,
            forced=forced,
            actor_id=actor_id,
        )
        if not decision.proceed:
            return PeriodRunResponse(
                job_key=PeriodJob.YEARLY_ROLLOVER,
                period=period,
                ran=False,
                forced=forced,
                count=0,
                run_count=decision.run_count,
                message=f"Year-end rollover has already been run for {period}",
                already_run=decision.already_run,
            )

        rows = await lock_active_balances(session)
        for employee, balance in rows:
            for current_field, rollover_field in ROLLOVER_PAIRS:
                moved = quantize_hours(balance.get_field(current_field))
                if moved == 0:
                    continue
                previous_rollover = quantize_hours(balance.get_field(rollover_field))
                new_rollover, forfeited = compute_rollover(moved, previous_rollover, cap)

                note = (
                    f"Year-end rollover {period}: moved {moved:.2f} hours from {current_field.value} "
                    f'to {rollover_field.value} for "{employee.full_name}"'
                )
                if forfeited > 0:
                    note += f" ({forfeited:.2f} hours forfeited over cap {cap:.2f})"

                await mutate_fields(
                    session,
                    balance,
                    {current_field: SetTo(ZERO_HOURS), rollover_field: SetTo(new_rollover)},
                    action_type=AuditActionType.YEAR_END_ROLLOVER,
                    category=AuditCategory.ROLLOVER,
                    note=note,
                    actor_id=actor_id,
                    balance_field=rollover_field,
                    hours=new_rollover - previous_rollover,
                    details={
                        "period": period,
                        "run_count": decision.run_count,
                        "forced": decision.forced_rerun,
                        "leave_category": current_field.leave_category.value,
                        "moved": str(moved),
                        "forfeited": str(forfeited),
                    },
                )
                if forfeited > 0:
                    logger.info(
                        "Rollover forfeited %s hours of %s for employee=%s (cap %s)",
                        format_hours(-forfeited),
                        rollover_field.value,
                        employee.id,
                        cap,
                    )

        return PeriodRunResponse(
            job_key=PeriodJob.YEARLY_ROLLOVER,
            period=period,
            ran=True,
            forced=forced,
            count=len(rows),
            run_count=decision.run_count,
            message=f"Year-end rollover completed for {len(rows)} employees",
            already_run=decision.already_run,
        )

    response = await run_with_retry(session, _run, description=f"year-end rollover {period}")
    if response.ran:
        logger.info(
            "Year-end rollover %s complete: employees=%d run_count=%d forced=%s",
            period,
            response.count,
            response.run_count,
            forced,
        )
    return response
