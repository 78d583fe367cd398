from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from app.models.base import LedgerDocument, _utcnow


class Payment(LedgerDocument):
    """
    Money received from a representative.

    allocated_amount mirrors the sum of the payment's allocation rows and is
    updated in the same transaction that writes them.
    """
    representative_id: str
    amount: Decimal
    payment_date: date
    description: str = ""

    allocated_amount: Decimal = Decimal("0.00")
    is_allocated: bool = False

    updated_at: datetime = Field(default_factory=_utcnow)

    def remaining_amount(self) -> Decimal:
        return self.amount - self.allocated_amount
