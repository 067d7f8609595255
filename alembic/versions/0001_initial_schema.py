"""initial schema: employee, employee_balance, period_run_marker, audit_entry

Revision ID: 0001
Revises:
Create Date: 2025-01-01 00:00:00

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _hours(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(10, 2), nullable=False, server_default="0")


def upgrade() -> None:
    op.create_table(
        "employee",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("hire_date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_employee_full_name", "employee", ["full_name"])
    op.create_index("ix_employee_is_active", "employee", ["is_active"])

    op.create_table(
        "employee_balance",
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        _hours("sick_current"),
        _hours("sick_rollover"),
        _hours("vac_current"),
        _hours("vac_rollover"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.ForeignKeyConstraint(["employee_id"], ["employee.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("employee_id"),
    )

    op.create_table(
        "period_run_marker",
        sa.Column("job_key", sa.String(length=50), nullable=False),
        sa.Column("period", sa.String(length=20), nullable=False),
        sa.Column("run_count", sa.Integer(), server_default="1", nullable=False),
        sa.Column("last_run_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_run_by", sa.Uuid(), nullable=True),
        sa.PrimaryKeyConstraint("job_key"),
    )

    op.create_table(
        "audit_entry",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=True),
        sa.Column("actor_id", sa.Uuid(), nullable=True),
        sa.Column("action_type", sa.String(length=50), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("balance_field", sa.String(length=50), nullable=True),
        sa.Column("hours", sa.Numeric(10, 2), nullable=True),
        sa.Column("note", sa.String(), nullable=False),
        sa.Column("details_json", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["employee_id"], ["employee.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_entry_created_at", "audit_entry", ["created_at"])
    op.create_index("ix_audit_entry_action_type", "audit_entry", ["action_type"])
    op.create_index("ix_audit_entry_category", "audit_entry", ["category"])
    op.create_index("ix_audit_employee_id_order", "audit_entry", ["employee_id", "id"])


def downgrade() -> None:
    op.drop_table("audit_entry")
    op.drop_table("period_run_marker")
    op.drop_table("employee_balance")
    op.drop_index("ix_employee_is_active", table_name="employee")
    op.drop_index("ix_employee_full_name", table_name="employee")
    op.drop_table("employee")
