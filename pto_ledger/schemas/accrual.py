# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from pto_ledger.models.enums import PeriodJob


class AlreadyRunInfo(BaseModel):
    """Metadata of the run that already processed the current period."""

    period: str
    last_run_at: datetime
    last_run_by: uuid.UUID | None
    run_count: int


class PeriodRunResponse(BaseModel):
    """Response from the monthly accrual and year-end rollover triggers."""

    job_key: PeriodJob
    period: str
    ran: bool
    forced: bool
    count: int
    run_count: int
    message: str
    already_run: AlreadyRunInfo | None = None


class PeriodMarkerResponse(BaseModel):
    """A persisted period run marker."""

    job_key: PeriodJob
    period: str
    run_count: int
    last_run_at: datetime
    last_run_by: uuid.UUID | None


class PeriodMarkerListResponse(BaseModel):
    """All period run markers plus the current accrual grant."""

    items: list[PeriodMarkerResponse]
    monthly_sick_grant: Decimal
    monthly_vac_grant: Decimal
