from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from app.models.base import LedgerDocument, _utcnow


class Representative(LedgerDocument):
    """
    A reseller that is invoiced and pays.

    total_debt and total_sales are derived aggregates; only the reconciler
    writes them.
    """
    code: str
    name: str
    owner_name: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True

    total_debt: Decimal = Decimal("0.00")
    total_sales: Decimal = Decimal("0.00")

    updated_at: datetime = Field(default_factory=_utcnow)
