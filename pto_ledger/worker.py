"""Worker process for the scheduled batch jobs.

Runs an asyncio loop that triggers the monthly accrual once per interval
(the period gate turns every run after the first in a month into a no-op)
and, during January, the year-end rollover for the year just closed.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import UTC, date, datetime

from pto_ledger.config import get_settings
from pto_ledger.db import get_session_factory
from pto_ledger.models.enums import PeriodJob
from pto_ledger.services.accrual import run_monthly_accrual
from pto_ledger.services.period import get_marker
from pto_ledger.services.rollover import run_year_end_rollover

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = uuid.UUID(int=0)


def closing_year(today: date) -> int | None:
    """Year whose rollover the worker may still owe on ``today``.

    Any tick in January can close the previous year, so a worker that was
    down on January 1 catches up on its first tick afterwards.
    """
    if today.month != 1:
        return None
    return today.year - 1


async def run_scheduled_jobs(today: date) -> None:
    """Run every job due on ``today``, each in its own session."""
    session_factory = get_session_factory()

    # Rollover first so January's accrual lands in the fresh current bucket.
    year = closing_year(today)
    if year is not None:
        try:
            async with session_factory() as session:
                marker = await get_marker(session, PeriodJob.YEARLY_ROLLOVER)
                if marker is not None and marker.period >= f"{year:04d}":
                    logger.debug("Rollover for %d already done (marker %s)", year, marker.period)
                else:
                    rollover = await run_year_end_rollover(session, actor_id=SYSTEM_ACTOR, today=today, year=year)
                    logger.info("Rollover for %s: ran=%s count=%d", rollover.period, rollover.ran, rollover.count)
        except Exception:
            logger.exception("Year-end rollover failed for %s", today)

    try:
        async with session_factory() as session:
            accrual = await run_monthly_accrual(session, actor_id=SYSTEM_ACTOR, today=today)
        logger.info("Accrual for %s: ran=%s count=%d", accrual.period, accrual.ran, accrual.count)
    except Exception:
        logger.exception("Monthly accrual failed for %s", today)


async def run_worker_loop() -> None:
    """Main worker loop."""
    interval = get_settings().worker_interval_seconds
    logger.info("Batch worker started (interval %ds)", interval)

    while True:
        await run_scheduled_jobs(datetime.now(UTC).date())
        await asyncio.sleep(interval)


def main() -> None:
    """Entry point for the worker process."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    asyncio.run(run_worker_loop())


if __name__ == "__main__":
    main()
