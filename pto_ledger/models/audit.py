# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def _now_utc() -> datetime:
    return datetime.now(UTC)


class AuditEntry(SQLModel, table=True):
    """Immutable record of every balance-affecting or roster action.

    The integer primary key gives a monotonic creation order, which is the
    replay order used for reconciliation.
    """

    __tablename__ = "audit_entry"
    __table_args__ = (sa.Index("ix_audit_employee_id_order", "employee_id", "id"),)

    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(
        default_factory=_now_utc,
        index=True,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
    employee_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("employee.id", ondelete="SET NULL"), nullable=True),
    )
    actor_id: uuid.UUID | None = None
    action_type: str = Field(max_length=50, index=True)
    category: str = Field(max_length=50, index=True)
    balance_field: str | None = Field(default=None, max_length=50)
    hours: Decimal | None = Field(default=None, sa_column=sa.Column(sa.Numeric(10, 2), nullable=True))
    note: str
    details_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
