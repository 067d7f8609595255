from fastapi import APIRouter

from pto_ledger.api.accruals import batch_router
from pto_ledger.api.adjustments import mass_adjustment_router
from pto_ledger.api.audit import audit_router
from pto_ledger.api.balances import employee_balance_router
from pto_ledger.api.employees import employees_router

api_router = APIRouter()
api_router.include_router(employees_router)
api_router.include_router(employee_balance_router)
api_router.include_router(batch_router)
api_router.include_router(mass_adjustment_router)
api_router.include_router(audit_router)
