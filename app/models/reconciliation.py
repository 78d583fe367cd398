from decimal import Decimal

from app.models.base import LedgerDocument


class ReconciliationAudit(LedgerDocument):
    """Written whenever the reconciler corrects a representative's aggregates."""
    representative_id: str
    previous_debt: Decimal
    new_debt: Decimal
    delta: Decimal
    previous_sales: Decimal
    new_sales: Decimal
