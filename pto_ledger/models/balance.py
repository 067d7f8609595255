# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from pto_ledger.models.base import ZERO_HOURS, hours_column
from pto_ledger.models.enums import BalanceField


def _now_utc() -> datetime:
    return datetime.now(UTC)


class EmployeeBalance(SQLModel, table=True):
    """The four leave buckets of one employee, locked row-wise on every write."""

    __tablename__ = "employee_balance"

    employee_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("employee.id", ondelete="CASCADE"), primary_key=True),
    )
    sick_current: Decimal = Field(default=ZERO_HOURS, sa_column=hours_column())
    sick_rollover: Decimal = Field(default=ZERO_HOURS, sa_column=hours_column())
    vac_current: Decimal = Field(default=ZERO_HOURS, sa_column=hours_column())
    vac_rollover: Decimal = Field(default=ZERO_HOURS, sa_column=hours_column())
    created_at: datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
    updated_at: datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})

    def get_field(self, field: BalanceField) -> Decimal:
        """Read one bucket by its enum member."""
        return Decimal(getattr(self, BalanceField(field).value))

    def set_field(self, field: BalanceField, value: Decimal) -> None:
        """Write one bucket by its enum member."""
        setattr(self, BalanceField(field).value, value)
