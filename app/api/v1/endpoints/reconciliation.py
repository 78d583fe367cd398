from typing import List
from fastapi import APIRouter, Depends
from app.api.deps import get_reconciliation_service
from app.schemas.reconciliation import ReconciliationAuditResponse, ReconciliationResponse
from app.services.reconciliation_service import ReconciliationService

router = APIRouter()

@router.post("/{representative_id}", response_model=ReconciliationResponse)
async def reconcile(
    representative_id: str,
    service: ReconciliationService = Depends(get_reconciliation_service)
):
    """Recompute total debt and sales from the ledger and correct drift"""
    return await service.reconcile(representative_id)

@router.get("/{representative_id}/history", response_model=List[ReconciliationAuditResponse])
async def reconciliation_history(
    representative_id: str,
    service: ReconciliationService = Depends(get_reconciliation_service)
):
    audits = await service.history(representative_id)
    return [ReconciliationAuditResponse.model_validate(a.model_dump()) for a in audits]
