from __future__ import annotations

from fastapi import APIRouter, Depends

from pto_ledger.api.deps import AdminDep, require_admin
from pto_ledger.db import SessionDep
from pto_ledger.schemas.adjustment import MassAdjustmentRequest, MassAdjustmentResponse
from pto_ledger.services import adjustment as adjustment_service

mass_adjustment_router = APIRouter(
    prefix="/mass-adjustments",
    tags=["adjustments"],
    dependencies=[Depends(require_admin)],
)


@mass_adjustment_router.post("/preview", response_model=MassAdjustmentResponse)
async def preview_mass_adjustment(
    payload: MassAdjustmentRequest,
    session: SessionDep,
) -> MassAdjustmentResponse:
    """Show each employee's before and after values without writing anything."""
    return await adjustment_service.preview_mass_adjustment(session, payload)


@mass_adjustment_router.post("", response_model=MassAdjustmentResponse)
async def mass_adjust(
    payload: MassAdjustmentRequest,
    session: SessionDep,
    auth: AdminDep,
) -> MassAdjustmentResponse:
    """Apply one adjustment to one bucket for every selected employee, all or nothing."""
    return await adjustment_service.mass_adjust(session, auth, payload)
