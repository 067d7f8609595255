from __future__ import annotations

import enum


class LeaveCategory(enum.StrEnum):
    """Leave category a balance field belongs to."""

    SICK = "SICK"
    VACATION = "VACATION"


class BalanceField(enum.StrEnum):
    """The four balance buckets held for every employee."""

    SICK_CURRENT = "sick_current"
    SICK_ROLLOVER = "sick_rollover"
    VAC_CURRENT = "vac_current"
    VAC_ROLLOVER = "vac_rollover"

    @property
    def leave_category(self) -> LeaveCategory:
        if self in (BalanceField.SICK_CURRENT, BalanceField.SICK_ROLLOVER):
            return LeaveCategory.SICK
        return LeaveCategory.VACATION


# current bucket -> rollover bucket it folds into at year end
ROLLOVER_PAIRS: tuple[tuple[BalanceField, BalanceField], ...] = (
    (BalanceField.SICK_CURRENT, BalanceField.SICK_ROLLOVER),
    (BalanceField.VAC_CURRENT, BalanceField.VAC_ROLLOVER),
)


class AuditCategory(enum.StrEnum):
    """Category recorded on every audit entry."""

    USAGE = "USAGE"
    ADJUSTMENT = "ADJUSTMENT"
    ACCRUAL = "ACCRUAL"
    ROLLOVER = "ROLLOVER"
    EMPLOYEE = "EMPLOYEE"


class AuditActionType(enum.StrEnum):
    """What happened, recorded in the audit log."""

    PTO_USAGE = "PTO_USAGE"
    ADJUSTMENT = "ADJUSTMENT"
    MASS_ADJUSTMENT = "MASS_ADJUSTMENT"
    BALANCE_CLEARED = "BALANCE_CLEARED"
    MONTHLY_ACCRUAL = "MONTHLY_ACCRUAL"
    YEAR_END_ROLLOVER = "YEAR_END_ROLLOVER"
    EMPLOYEE_CREATED = "EMPLOYEE_CREATED"
    EMPLOYEE_ACTIVATED = "EMPLOYEE_ACTIVATED"
    EMPLOYEE_DEACTIVATED = "EMPLOYEE_DEACTIVATED"
    EMPLOYEE_DELETED = "EMPLOYEE_DELETED"


class AdjustmentKind(enum.StrEnum):
    """Rule applied by a mass adjustment."""

    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


class ClearScope(enum.StrEnum):
    """Which fields a clear-balance operation zeroes."""

    SICK = "sick"
    VACATION = "vacation"
    ALL = "all"

    @property
    def fields(self) -> tuple[BalanceField, ...]:
        if self == ClearScope.SICK:
            return (BalanceField.SICK_CURRENT, BalanceField.SICK_ROLLOVER)
        if self == ClearScope.VACATION:
            return (BalanceField.VAC_CURRENT, BalanceField.VAC_ROLLOVER)
        return tuple(BalanceField)


class PeriodJob(enum.StrEnum):
    """Recurring batch jobs guarded by a period run marker."""

    MONTHLY_ACCRUAL = "monthly_accrual"
    YEARLY_ROLLOVER = "yearly_rollover"
