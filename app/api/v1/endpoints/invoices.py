from typing import List
from fastapi import APIRouter, Depends
from app.api.deps import get_allocation_service
from app.schemas.invoice import InvoiceCreate, InvoiceResponse
from app.services.allocation_service import AllocationService

router = APIRouter()

@router.post("", response_model=InvoiceResponse)
async def create_invoice(
    invoice_in: InvoiceCreate,
    service: AllocationService = Depends(get_allocation_service)
):
    invoice = await service.create_invoice(invoice_in)
    return InvoiceResponse.from_invoice(invoice)

@router.get("/representative/{representative_id}", response_model=List[InvoiceResponse])
async def list_representative_invoices(
    representative_id: str,
    service: AllocationService = Depends(get_allocation_service)
):
    """Invoices oldest first, status as of today"""
    invoices = await service.list_invoices(representative_id)
    return [InvoiceResponse.from_invoice(i) for i in invoices]
