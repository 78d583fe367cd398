from datetime import datetime
from decimal import Decimal
from typing import Optional

from app.schemas.base import CamelModel


class ReconciliationResponse(CamelModel):
    """
    previous_debt / new_debt are the stored aggregate before and after.
    delta is zero and drift_detected false when nothing had to change.
    """
    representative_id: str
    previous_debt: Decimal
    new_debt: Decimal
    delta: Decimal
    total_sales: Decimal
    total_allocated: Decimal
    drift_detected: bool
    audit_id: Optional[str] = None


class ReconciliationAuditResponse(CamelModel):
    id: str
    representative_id: str
    previous_debt: Decimal
    new_debt: Decimal
    delta: Decimal
    previous_sales: Decimal
    new_sales: Decimal
    created_at: datetime
