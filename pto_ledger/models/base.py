from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

HOURS_QUANTUM = Decimal("0.01")
ZERO_HOURS = Decimal("0.00")


def _uuid_factory() -> uuid.UUID:
    """Generate a new UUID v4."""
    return uuid.uuid4()


def _now_utc() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)


def quantize_hours(value: Decimal | int | float | str) -> Decimal:
    """Round an hours amount half-up to two decimal places."""
    return Decimal(str(value)).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def hours_column() -> sa.Column:  # type: ignore[type-arg]
    """Non-null NUMERIC(10, 2) column defaulting to zero."""
    return sa.Column(sa.Numeric(10, 2), nullable=False, server_default="0", default=ZERO_HOURS)


class UUIDBase(SQLModel):
    """Base model with UUID primary key."""

    id: uuid.UUID = Field(
        default_factory=_uuid_factory,
        primary_key=True,
        sa_type=sa.Uuid,
    )


class TimestampMixin(SQLModel):
    """Mixin that adds a created_at timestamp."""

    created_at: datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
