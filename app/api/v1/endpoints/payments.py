from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from app.api.deps import get_allocation_service
from app.schemas.allocation import (
    AllocationReversalResponse,
    AllocationRunResponse,
    AllocationSummaryResponse,
    BatchAllocationResponse,
    PaymentAllocationDetails,
)
from app.schemas.payment import PaymentCreate, PaymentResponse
from app.services.allocation_service import AllocationService

router = APIRouter()

@router.post("", response_model=PaymentResponse)
async def create_payment(
    payment_in: PaymentCreate,
    auto_allocate: bool = Query(True, alias="autoAllocate"),
    service: AllocationService = Depends(get_allocation_service)
):
    """Record a payment; allocate it FIFO unless autoAllocate=false"""
    payment = await service.create_payment(payment_in, auto_allocate=auto_allocate)
    return PaymentResponse.from_payment(payment)

@router.get("/unallocated", response_model=List[PaymentResponse])
async def list_unallocated_payments(
    representative_id: Optional[str] = Query(None, alias="representativeId"),
    service: AllocationService = Depends(get_allocation_service)
):
    """Payments not yet fully allocated, oldest first"""
    payments = await service.list_unallocated(representative_id)
    return [PaymentResponse.from_payment(p) for p in payments]

@router.get("/allocation-summary", response_model=AllocationSummaryResponse)
async def get_allocation_summary(
    representative_id: Optional[str] = Query(None, alias="representativeId"),
    service: AllocationService = Depends(get_allocation_service)
):
    return await service.allocation_summary(representative_id)

@router.post("/auto-allocate/batch", response_model=BatchAllocationResponse)
async def auto_allocate_all(service: AllocationService = Depends(get_allocation_service)):
    """Auto-allocate for every representative with unallocated payments"""
    return await service.auto_allocate_all()

@router.post("/auto-allocate/{representative_id}", response_model=AllocationRunResponse)
async def auto_allocate(
    representative_id: str,
    service: AllocationService = Depends(get_allocation_service)
):
    """Allocate a representative's unallocated payments to open invoices, oldest first"""
    return await service.auto_allocate(representative_id)

@router.get("/representative/{representative_id}", response_model=List[PaymentResponse])
async def list_representative_payments(
    representative_id: str,
    service: AllocationService = Depends(get_allocation_service)
):
    payments = await service.list_payments(representative_id)
    return [PaymentResponse.from_payment(p) for p in payments]

@router.get("/{payment_id}/allocation-details", response_model=PaymentAllocationDetails)
async def get_allocation_details(
    payment_id: str,
    service: AllocationService = Depends(get_allocation_service)
):
    return await service.allocation_details(payment_id)

@router.post("/{payment_id}/reverse-allocations", response_model=AllocationReversalResponse)
async def reverse_allocations(
    payment_id: str,
    service: AllocationService = Depends(get_allocation_service)
):
    """Write compensating rows for every live allocation of the payment"""
    return await service.reverse_payment_allocations(payment_id)
