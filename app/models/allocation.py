"""
Allocation model - which part of a payment settled which invoice.

Design principles:
- Rows are written only by the allocation service
- Immutable once written; undoing is a new row with a negative amount
  whose reversal_of points at the original
- Net sum per payment <= payment.amount, net sum per invoice <= invoice.amount
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from app.models.base import LedgerDocument


class Allocation(LedgerDocument):
    run_id: str
    payment_id: str
    invoice_id: str
    representative_id: str
    allocated_amount: Decimal
    reversal_of: Optional[str] = None


class InvoiceUpdate(BaseModel):
    """Conditional invoice write: applied only if paid_amount is still expected_paid_amount."""
    invoice_id: str
    expected_paid_amount: Decimal
    paid_amount: Decimal
    status: str


class PaymentUpdate(BaseModel):
    """Conditional payment write: applied only if allocated_amount is still expected_allocated_amount."""
    payment_id: str
    expected_allocated_amount: Decimal
    allocated_amount: Decimal
    is_allocated: bool


class AllocationRun(BaseModel):
    """Everything one run writes; committed all-or-nothing."""
    run_id: str
    representative_id: str
    allocations: List[Allocation] = []
    invoice_updates: List[InvoiceUpdate] = []
    payment_updates: List[PaymentUpdate] = []

    def is_empty(self) -> bool:
        return not self.allocations
