from sqlmodel import SQLModel

from pto_ledger.models.audit import AuditEntry
from pto_ledger.models.balance import EmployeeBalance
from pto_ledger.models.base import TimestampMixin, UUIDBase
from pto_ledger.models.employee import Employee
from pto_ledger.models.enums import (
    AdjustmentKind,
    AuditActionType,
    AuditCategory,
    BalanceField,
    ClearScope,
    LeaveCategory,
    PeriodJob,
)
from pto_ledger.models.period import PeriodRunMarker

__all__ = [
    "AdjustmentKind",
    "AuditActionType",
    "AuditCategory",
    "AuditEntry",
    "BalanceField",
    "ClearScope",
    "Employee",
    "EmployeeBalance",
    "LeaveCategory",
    "PeriodJob",
    "PeriodRunMarker",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
]
