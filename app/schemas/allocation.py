from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from app.schemas.base import CamelModel
from app.schemas.payment import PaymentResponse


class AllocationLine(CamelModel):
    """One slice of a payment placed on an invoice."""
    payment_id: str
    invoice_id: str
    amount: Decimal


class AllocationRunResponse(CamelModel):
    """Result of one auto-allocation run for a representative."""
    representative_id: str
    allocated: int
    total_amount: Decimal
    allocations: List[AllocationLine] = []


class AllocationFailure(CamelModel):
    representative_id: str
    error: str
    code: str


class BatchAllocationResponse(CamelModel):
    representatives: int
    allocated: int
    total_amount: Decimal
    results: List[AllocationRunResponse] = []
    failures: List[AllocationFailure] = []


class AllocationSummaryResponse(CamelModel):
    total_payments: int
    allocated_payments: int
    unallocated_payments: int
    total_paid_amount: Decimal
    total_unallocated_amount: Decimal


class AllocationResponse(CamelModel):
    id: str
    run_id: str
    payment_id: str
    invoice_id: str
    allocated_amount: Decimal
    reversal_of: Optional[str] = None
    created_at: datetime


class PaymentAllocationDetails(CamelModel):
    payment: PaymentResponse
    allocations: List[AllocationResponse] = []


class AllocationReversalResponse(CamelModel):
    payment_id: str
    reversed: int
    total_amount: Decimal
