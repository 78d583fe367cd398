"""
FIFO allocation policy.

Pure functions only: nothing here reads or writes the ledger, so the same
inputs always give the same plan.

Ordering: oldest invoice first (issue_date ascending), ties broken by
invoice id ascending.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Tuple

from app.core.exceptions import InvalidAmount
from app.utils.money import ZERO


@dataclass(frozen=True)
class OpenInvoice:
    """Snapshot of an invoice as seen by one planning step."""

    invoice_id: str
    issue_date: date
    remaining_amount: Decimal


@dataclass(frozen=True)
class PlannedAllocation:
    invoice_id: str
    amount: Decimal


@dataclass(frozen=True)
class AllocationPlan:
    payment_id: str
    allocations: Tuple[PlannedAllocation, ...] = field(default_factory=tuple)
    unallocated: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return sum((a.amount for a in self.allocations), ZERO)

    def is_empty(self) -> bool:
        return not self.allocations


def order_invoices(invoices: Iterable[OpenInvoice]) -> List[OpenInvoice]:
    return sorted(invoices, key=lambda inv: (inv.issue_date, inv.invoice_id))


def allocate(
    payment_id: str,
    payment_remaining: Decimal,
    open_invoices: Iterable[OpenInvoice]
) -> AllocationPlan:
    """
    Split what is left of one payment across open invoices, oldest first.

    Each invoice takes min(remaining payment, remaining invoice). Invoices
    with nothing left are skipped. Whatever cannot be placed is returned as
    ``unallocated``.

    Raises InvalidAmount if payment_remaining is not positive.
    """
    if payment_remaining is None or payment_remaining <= 0:
        raise InvalidAmount(
            f"Payment {payment_id} has no positive amount to allocate ({payment_remaining})"
        )

    remaining = payment_remaining
    allocations: List[PlannedAllocation] = []

    for invoice in order_invoices(open_invoices):
        if remaining <= 0:
            break
        if invoice.remaining_amount <= 0:
            continue

        amount = min(remaining, invoice.remaining_amount)
        allocations.append(PlannedAllocation(invoice_id=invoice.invoice_id, amount=amount))
        remaining -= amount

    return AllocationPlan(
        payment_id=payment_id,
        allocations=tuple(allocations),
        unallocated=remaining
    )
