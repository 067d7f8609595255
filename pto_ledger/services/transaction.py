"""Unit-of-work runner that retries on serialization failures and deadlocks."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

from sqlalchemy.exc import DBAPIError

from pto_ledger.config import get_settings
from pto_ledger.exceptions import TransactionConflictError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


class ConcurrentUpdateError(Exception):
    """Raised inside a unit of work when another writer won a race."""


def is_retryable_conflict(exc: BaseException) -> bool:
    """Return True for errors that a fresh attempt of the same transaction may avoid."""
    if isinstance(exc, ConcurrentUpdateError):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _RETRYABLE_SQLSTATES:
        return True
    message = str(orig).lower()
    return "deadlock detected" in message or "could not serialize access" in message


async def run_with_retry(
    session: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    description: str,
) -> T:
    """Run ``operation`` and commit, as one transaction.

    Any exception rolls the whole transaction back. Conflicts are retried
    with a linear backoff up to ``max_conflict_retries`` attempts, then
    surface as ``TransactionConflictError``.
    """
    settings = get_settings()
    attempts = settings.max_conflict_retries

    for attempt in range(1, attempts + 1):
        try:
            result = await operation()
            await session.commit()
        except Exception as exc:
            await session.rollback()
            if not is_retryable_conflict(exc):
                raise
            logger.warning(
                "Conflict during %s (attempt %d/%d): %s",
                description,
                attempt,
                attempts,
                exc,
            )
            if attempt < attempts:
                await asyncio.sleep(settings.conflict_backoff_seconds * attempt)
        else:
            return result

    raise TransactionConflictError(attempts)
