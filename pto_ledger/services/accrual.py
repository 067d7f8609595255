"""Monthly accrual: grants a fixed slice of the annual allowance to every active employee."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from pto_ledger.config import get_settings
from pto_ledger.models.base import quantize_hours
from pto_ledger.models.enums import AuditActionType, AuditCategory, BalanceField, PeriodJob
from pto_ledger.schemas.accrual import PeriodRunResponse
from pto_ledger.services.balance import Delta, lock_active_balances, mutate_field
from pto_ledger.services.period import check_and_mark, month_period_key
from pto_ledger.services.transaction import run_with_retry

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12


def monthly_grant(annual_hours: Decimal) -> Decimal:
    """One month's share of an annual allowance, rounded to hundredths.

    40 annual hours gives 3.33 hours per month.
    """
    return quantize_hours(Decimal(annual_hours) / MONTHS_PER_YEAR)


def current_grants() -> dict[BalanceField, Decimal]:
    """The per-field monthly grant under the configured policy."""
    settings = get_settings()
    return {
        BalanceField.SICK_CURRENT: monthly_grant(settings.annual_sick_hours),
        BalanceField.VAC_CURRENT: monthly_grant(settings.annual_vac_hours),
    }


async def run_monthly_accrual(
    session: AsyncSession,
    *,
    actor_id: uuid.UUID | None,
    forced: bool = False,
    today: date | None = None,
) -> PeriodRunResponse:
    """Grant this month's sick and vacation hours to every active employee.

    Runs at most once per calendar month unless ``forced``. The gate check,
    every balance update, and every audit entry commit as one transaction;
    if anything fails nothing is granted and the month stays unmarked.

    Args:
        session: Database session; committed on success, rolled back on failure.
        actor_id: Operator recorded on the period marker and audit entries.
        forced: Re-run even though the month was already processed.
        today: Date that selects the period (defaults to today in UTC).
    """
    if today is None:
        today = datetime.now(UTC).date()
    period = month_period_key(today)
    grants = current_grants()

    async def _run() -> PeriodRunResponse:
        decision = await check_and_mark(
            session,
            PeriodJob.MONTHLY_ACCRUAL,
            period,
            forced=forced,
            actor_id=actor_id,
        )
        if not decision.proceed:
            return PeriodRunResponse(
                job_key=PeriodJob.MONTHLY_ACCRUAL,
                period=period,
                ran=False,
                forced=forced,
                count=0,
                run_count=decision.run_count,
                message=f"Monthly accrual has already been run for {period}",
                already_run=decision.already_run,
            )

        details = {
            "period": period,
            "run_count": decision.run_count,
            "forced": decision.forced_rerun,
        }
        rows = await lock_active_balances(session)
        for employee, balance in rows:
            for field, grant in grants.items():
                if grant <= 0:
                    continue
                await mutate_field(
                    session,
                    balance,
                    field,
                    Delta(grant),
                    action_type=AuditActionType.MONTHLY_ACCRUAL,
                    category=AuditCategory.ACCRUAL,
                    note=f'Monthly accrual {period}: +{grant:.2f} hours to {field.value} for "{employee.full_name}"',
                    actor_id=actor_id,
                    details=details,
                )

        return PeriodRunResponse(
            job_key=PeriodJob.MONTHLY_ACCRUAL,
            period=period,
            ran=True,
            forced=forced,
            count=len(rows),
            run_count=decision.run_count,
            message=f"Monthly accrual completed for {len(rows)} employees",
            already_run=decision.already_run,
        )

    response = await run_with_retry(session, _run, description=f"monthly accrual {period}")
    if response.ran:
        logger.info(
            "Monthly accrual %s complete: employees=%d run_count=%d forced=%s",
            period,
            response.count,
            response.run_count,
            forced,
        )
    return response
