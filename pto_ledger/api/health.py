import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import select
from sqlmodel import col

from pto_ledger.config import get_settings
from pto_ledger.db import SessionDep
from pto_ledger.models.enums import PeriodJob
from pto_ledger.models.period import PeriodRunMarker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Liveness plus the last period each batch job processed."""

    status: Literal["ok", "degraded"]
    version: str
    environment: str
    last_monthly_accrual: str | None = None
    last_year_end_rollover: str | None = None


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Return service health; degraded when the database cannot be queried."""
    settings = get_settings()
    response = HealthResponse(status="ok", version=settings.app_version, environment=settings.environment)

    try:
        result = await session.execute(select(col(PeriodRunMarker.job_key), col(PeriodRunMarker.period)))
        periods = dict(result.tuples().all())
    except Exception:
        logger.exception("Health check: database query failed")
        response.status = "degraded"
        return response

    response.last_monthly_accrual = periods.get(PeriodJob.MONTHLY_ACCRUAL.value)
    response.last_year_end_rollover = periods.get(PeriodJob.YEARLY_ROLLOVER.value)
    return response
