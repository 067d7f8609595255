# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def _now_utc() -> datetime:
    return datetime.now(UTC)


class PeriodRunMarker(SQLModel, table=True):
    """Last period a recurring job processed, one row per job key."""

    __tablename__ = "period_run_marker"

    job_key: str = Field(primary_key=True, max_length=50)
    period: str = Field(max_length=20)
    run_count: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
    last_run_at: datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
    last_run_by: uuid.UUID | None = None
