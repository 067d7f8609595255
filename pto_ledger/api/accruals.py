# ruff: noqa: B008
"""API endpoints for the period-gated batch jobs."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from pto_ledger.api.deps import AdminDep, require_admin
from pto_ledger.db import SessionDep
from pto_ledger.models.enums import BalanceField
from pto_ledger.schemas.accrual import PeriodMarkerListResponse, PeriodRunResponse
from pto_ledger.services.accrual import current_grants, run_monthly_accrual
from pto_ledger.services.period import list_period_markers
from pto_ledger.services.rollover import run_year_end_rollover

batch_router = APIRouter(
    tags=["accruals"],
    dependencies=[Depends(require_admin)],
)


@batch_router.post("/accruals/monthly", response_model=PeriodRunResponse)
async def trigger_monthly_accrual(
    session: SessionDep,
    auth: AdminDep,
    forced: bool = Query(default=False),
) -> PeriodRunResponse:
    """Run this month's accrual for every active employee (admin only).

    Returns ``ran=false`` with the previous run's metadata when the month was
    already processed; pass ``forced=true`` to run it again anyway.
    """
    return await run_monthly_accrual(session, actor_id=auth.user_id, forced=forced)


@batch_router.post("/rollovers/year-end", response_model=PeriodRunResponse)
async def trigger_year_end_rollover(
    session: SessionDep,
    auth: AdminDep,
    forced: bool = Query(default=False),
    year: int | None = Query(default=None, ge=1900, le=9999),
) -> PeriodRunResponse:
    """Move current hours into rollover for every active employee (admin only).

    ``year`` names the year being closed; it defaults to the current year.
    """
    return await run_year_end_rollover(session, actor_id=auth.user_id, forced=forced, year=year)


@batch_router.get("/period-markers", response_model=PeriodMarkerListResponse)
async def get_period_markers(session: SessionDep) -> PeriodMarkerListResponse:
    """List the last processed period of each batch job."""
    grants = current_grants()
    return PeriodMarkerListResponse(
        items=await list_period_markers(session),
        monthly_sick_grant=grants[BalanceField.SICK_CURRENT],
        monthly_vac_grant=grants[BalanceField.VAC_CURRENT],
    )
