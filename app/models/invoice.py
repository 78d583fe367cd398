"""
Invoice model.

Invariants:
- 0 <= paid_amount <= amount
- status is a pure function of (amount, paid_amount, due_date, today)
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field

from app.models.base import LedgerDocument, _utcnow


class InvoiceStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"


OPEN_STATUSES = [InvoiceStatus.UNPAID.value, InvoiceStatus.PARTIALLY_PAID.value, InvoiceStatus.OVERDUE.value]


def derive_invoice_status(
    amount: Decimal,
    paid_amount: Decimal,
    due_date: Optional[date],
    today: date
) -> InvoiceStatus:
    """Paid wins, then overdue, then partially paid."""
    if paid_amount >= amount:
        return InvoiceStatus.PAID
    if due_date is not None and due_date < today:
        return InvoiceStatus.OVERDUE
    if paid_amount > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.UNPAID


class Invoice(LedgerDocument):
    invoice_number: str
    representative_id: str

    amount: Decimal
    paid_amount: Decimal = Decimal("0.00")
    status: InvoiceStatus = InvoiceStatus.UNPAID

    issue_date: date
    due_date: Optional[date] = None
    description: str = ""

    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(use_enum_values=True)

    def remaining_amount(self) -> Decimal:
        """How much is still owed on this invoice."""
        return self.amount - self.paid_amount

    def current_status(self, today: date) -> InvoiceStatus:
        return derive_invoice_status(self.amount, self.paid_amount, self.due_date, today)
