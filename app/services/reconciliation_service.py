"""
Debt reconciliation.

total_debt and total_sales on a representative are derived values:

    total_sales = sum(invoice.amount)
    total_debt  = total_sales - sum(allocation.allocated_amount)

The reconciler recomputes both from the ledger, compares with what is
stored and, on drift, overwrites the stored values with a compare-and-set
and writes an audit record. Drift is corrected, never raised.
"""

import logging
from typing import List, Optional

from app.core.config import settings
from app.core.exceptions import PersistenceFailure, RepresentativeNotFound
from app.db.locks import RepresentativeLock
from app.models.reconciliation import ReconciliationAudit
from app.models.representative import Representative
from app.repositories.ledger_repo import LedgerRepository
from app.repositories.representative_repo import RepresentativeRepository
from app.schemas.reconciliation import ReconciliationResponse
from app.utils.money import ZERO, quantize

logger = logging.getLogger(__name__)


class ReconciliationService:
    def __init__(
        self,
        ledger: LedgerRepository,
        representatives: RepresentativeRepository,
        lock: RepresentativeLock,
        max_attempts: Optional[int] = None
    ):
        self.ledger = ledger
        self.representatives = representatives
        self.lock = lock
        self.max_attempts = settings.RECONCILE_MAX_ATTEMPTS if max_attempts is None else max_attempts

    async def reconcile(self, representative_id: str) -> ReconciliationResponse:
        representative = await self._get_representative(representative_id)

        async with self.lock.hold(representative_id):
            for attempt in range(1, self.max_attempts + 1):
                total_sales = await self.ledger.sum_invoice_amounts(representative_id)
                total_allocated = await self.ledger.sum_allocated_amounts(representative_id)
                true_debt = quantize(total_sales - total_allocated)

                previous_debt = quantize(representative.total_debt)
                previous_sales = quantize(representative.total_sales)

                if true_debt == previous_debt and total_sales == previous_sales:
                    return ReconciliationResponse(
                        representative_id=representative_id,
                        previous_debt=previous_debt,
                        new_debt=true_debt,
                        delta=ZERO,
                        total_sales=total_sales,
                        total_allocated=total_allocated,
                        drift_detected=False
                    )

                swapped = await self.representatives.compare_and_set_totals(
                    representative_id,
                    expected_debt=representative.total_debt,
                    expected_sales=representative.total_sales,
                    new_debt=true_debt,
                    new_sales=total_sales
                )
                if swapped:
                    delta = true_debt - previous_debt
                    audit = await self.representatives.insert_audit(ReconciliationAudit(
                        representative_id=representative_id,
                        previous_debt=previous_debt,
                        new_debt=true_debt,
                        delta=delta,
                        previous_sales=previous_sales,
                        new_sales=total_sales
                    ))
                    logger.info(
                        "Representative %s debt corrected %s -> %s (delta %s)",
                        representative_id, previous_debt, true_debt, delta
                    )
                    return ReconciliationResponse(
                        representative_id=representative_id,
                        previous_debt=previous_debt,
                        new_debt=true_debt,
                        delta=delta,
                        total_sales=total_sales,
                        total_allocated=total_allocated,
                        drift_detected=True,
                        audit_id=audit.id
                    )

                logger.warning(
                    "Representative %s aggregates changed under reconciliation (attempt %d/%d)",
                    representative_id, attempt, self.max_attempts
                )
                representative = await self._get_representative(representative_id)

        raise PersistenceFailure(
            f"Could not reconcile representative {representative_id} after {self.max_attempts} attempts"
        )

    async def history(self, representative_id: str) -> List[ReconciliationAudit]:
        await self._get_representative(representative_id)
        return await self.representatives.list_audits(representative_id)

    async def _get_representative(self, representative_id: str) -> Representative:
        representative = await self.representatives.get(representative_id)
        if representative is None:
            raise RepresentativeNotFound(representative_id)
        return representative
