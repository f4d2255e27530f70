"""Operator routes for the reconciliation log."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from porter.api.dependencies import DispatchServices, get_services, require_admin
from porter.core.reconciliation import ReconciliationRecord, ReplayReport
from porter.models.common import Actor

router = APIRouter(prefix="/admin", tags=["admin"])


class PendingRecords(BaseModel):
    records: list[ReconciliationRecord]
    count: int


@router.get("/reconciliation", response_model=PendingRecords)
async def pending_reconciliation(
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> PendingRecords:
    """Driver/vehicle updates that failed after their order was written."""
    records = await services.sync.pending()
    return PendingRecords(records=records, count=len(records))


@router.post("/reconciliation/replay", response_model=ReplayReport)
async def replay_reconciliation(
    _: Actor = Depends(require_admin),
    services: DispatchServices = Depends(get_services),
) -> ReplayReport:
    return await services.sync.replay()
