# ruff: noqa: TC003
from __future__ import annotations

from datetime import date

import sqlalchemy as sa
from sqlmodel import Field

from pto_ledger.models.base import TimestampMixin, UUIDBase


class Employee(UUIDBase, TimestampMixin, table=True):
    """Roster entry; the active flag gates batch jobs and mass adjustments."""

    __tablename__ = "employee"

    full_name: str = Field(max_length=255, index=True)
    hire_date: date
    is_active: bool = Field(default=True, index=True, sa_column_kwargs={"server_default": sa.true()})
