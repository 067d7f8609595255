"""Period gate: persisted run markers that let a recurring job run once per period.

State machine per job key::

    NeverRun        -> Run(P, 1)       first run
    Run(P, n)       -> Run(P, n + 1)   forced re-run in the same period
    Run(P, n)       -> Run(P2, 1)      first run in a new period

The gate never commits. It runs inside the batch job's transaction so the
marker only advances if every balance mutation of the batch commits too.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from pto_ledger.models.period import PeriodRunMarker
from pto_ledger.schemas.accrual import AlreadyRunInfo, PeriodMarkerResponse
from pto_ledger.services.transaction import ConcurrentUpdateError

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from pto_ledger.models.enums import PeriodJob

logger = logging.getLogger(__name__)


@dataclass
class GateDecision:
    """Outcome of a period gate check."""

    proceed: bool
    period: str
    run_count: int
    forced_rerun: bool = False
    already_run: AlreadyRunInfo | None = None


def month_period_key(day: date) -> str:
    """Period key for monthly jobs, e.g. ``2025-03``."""
    return f"{day.year:04d}-{day.month:02d}"


def year_period_key(day: date) -> str:
    """Period key for yearly jobs, e.g. ``2025``."""
    return f"{day.year:04d}"


def _already_run_info(marker: PeriodRunMarker) -> AlreadyRunInfo:
    return AlreadyRunInfo(
        period=marker.period,
        last_run_at=marker.last_run_at,
        last_run_by=marker.last_run_by,
        run_count=marker.run_count,
    )


async def check_and_mark(
    session: AsyncSession,
    job_key: PeriodJob,
    current_period: str,
    *,
    forced: bool,
    actor_id: uuid.UUID | None,
) -> GateDecision:
    """Decide whether ``job_key`` may run for ``current_period`` and mark it if so.

    Locks the marker row with SELECT FOR UPDATE. Two callers creating the
    first marker at the same time collide on the primary key; the loser
    raises ``ConcurrentUpdateError`` so the unit of work is retried.
    """
    result = await session.execute(
        select(PeriodRunMarker)
        .where(col(PeriodRunMarker.job_key) == job_key.value)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    marker = result.scalar_one_or_none()
    now = datetime.now(UTC)

    if marker is None:
        marker = PeriodRunMarker(
            job_key=job_key.value,
            period=current_period,
            run_count=1,
            last_run_at=now,
            last_run_by=actor_id,
        )
        session.add(marker)
        try:
            await session.flush()
        except IntegrityError as exc:
            msg = f"Period marker for {job_key.value} was created concurrently"
            raise ConcurrentUpdateError(msg) from exc
        logger.info("Period gate %s: first run for %s", job_key.value, current_period)
        return GateDecision(proceed=True, period=current_period, run_count=1)

    if marker.period != current_period:
        logger.info(
            "Period gate %s: entering %s (previous period %s)",
            job_key.value,
            current_period,
            marker.period,
        )
        marker.period = current_period
        marker.run_count = 1
        marker.last_run_at = now
        marker.last_run_by = actor_id
        await session.flush()
        return GateDecision(proceed=True, period=current_period, run_count=1)

    if not forced:
        logger.info(
            "Period gate %s: %s already run %d time(s), not forced",
            job_key.value,
            current_period,
            marker.run_count,
        )
        return GateDecision(
            proceed=False,
            period=current_period,
            run_count=marker.run_count,
            already_run=_already_run_info(marker),
        )

    previous = _already_run_info(marker)
    marker.run_count += 1
    marker.last_run_at = now
    marker.last_run_by = actor_id
    await session.flush()
    logger.warning(
        "Period gate %s: forced re-run #%d for %s",
        job_key.value,
        marker.run_count,
        current_period,
    )
    return GateDecision(
        proceed=True,
        period=current_period,
        run_count=marker.run_count,
        forced_rerun=True,
        already_run=previous,
    )


async def get_marker(session: AsyncSession, job_key: PeriodJob) -> PeriodRunMarker | None:
    """Read a marker without locking it."""
    return await session.get(PeriodRunMarker, job_key.value)


async def list_period_markers(session: AsyncSession) -> list[PeriodMarkerResponse]:
    """Return every persisted marker ordered by job key."""
    result = await session.execute(select(PeriodRunMarker).order_by(col(PeriodRunMarker.job_key)))
    return [
        PeriodMarkerResponse(
            job_key=marker.job_key,  # type: ignore[arg-type]
            period=marker.period,
            run_count=marker.run_count,
            last_run_at=marker.last_run_at,
            last_run_by=marker.last_run_by,
        )
        for marker in result.scalars().all()
    ]
