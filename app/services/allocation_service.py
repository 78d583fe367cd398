"""
Auto-allocation of payments to invoices.

A run for one representative:
1. Take the representative lock (one run per representative at a time)
2. Load unallocated payments, oldest first, and open invoices
3. Plan each payment with the FIFO policy against a running view of what
   every invoice still owes, so later payments see earlier ones
4. Commit allocation rows, invoice and payment updates in one transaction

Re-running with nothing new plans nothing and writes nothing.
"""

import asyncio
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from app.core.exceptions import LedgerError, PaymentNotFound, PersistenceFailure, RepresentativeNotFound
from app.db.locks import RepresentativeLock
from app.models.allocation import Allocation, AllocationRun, InvoiceUpdate, PaymentUpdate
from app.models.invoice import Invoice, derive_invoice_status
from app.models.payment import Payment
from app.models.representative import Representative
from app.repositories.ledger_repo import LedgerRepository
from app.repositories.representative_repo import RepresentativeRepository
from app.schemas.allocation import (
    AllocationFailure,
    AllocationLine,
    AllocationResponse,
    AllocationReversalResponse,
    AllocationRunResponse,
    AllocationSummaryResponse,
    BatchAllocationResponse,
    PaymentAllocationDetails,
)
from app.schemas.invoice import InvoiceCreate
from app.schemas.payment import PaymentCreate, PaymentResponse
from app.services.allocation_policy import OpenInvoice, allocate
from app.utils.money import ZERO, require_positive, total

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class AllocationService:
    def __init__(
        self,
        ledger: LedgerRepository,
        representatives: RepresentativeRepository,
        lock: RepresentativeLock,
        today: Callable[[], date] = utc_today
    ):
        self.ledger = ledger
        self.representatives = representatives
        self.lock = lock
        self.today = today

    # ===== POSTINGS =====

    async def create_invoice(self, invoice_in: InvoiceCreate) -> Invoice:
        await self._get_representative(invoice_in.representative_id)
        invoice = await self.ledger.create_invoice(invoice_in, self.today())
        logger.info("Invoice %s posted for representative %s", invoice.invoice_number, invoice.representative_id)
        return invoice

    async def create_payment(self, payment_in: PaymentCreate, auto_allocate: bool = True) -> Payment:
        """
        Record a payment and, unless told not to, allocate it right away.

        A failed allocation leaves the payment unallocated for the next run;
        the payment itself is still recorded.
        """
        await self._get_representative(payment_in.representative_id)
        payment = await self.ledger.create_payment(payment_in)
        logger.info("Payment %s of %s recorded for representative %s",
                    payment.id, payment.amount, payment.representative_id)

        if not auto_allocate:
            return payment

        try:
            await self.auto_allocate(payment.representative_id)
        except LedgerError as exc:
            logger.warning("Payment %s left unallocated: %s", payment.id, exc.message)
            return payment
        return await self.ledger.get_payment(payment.id) or payment

    # ===== AUTO-ALLOCATION =====

    async def auto_allocate(self, representative_id: str) -> AllocationRunResponse:
        await self._get_representative(representative_id)

        async with self.lock.hold(representative_id) as token:
            payments = await self.ledger.list_unallocated_payments(representative_id)
            for payment in payments:
                require_positive(payment.amount, f"Payment {payment.id} amount")

            invoices = await self.ledger.list_open_invoices(representative_id)
            run, lines = self._plan_run(representative_id, payments, invoices)

            if run.is_empty():
                logger.debug("Nothing to allocate for representative %s", representative_id)
                return AllocationRunResponse(representative_id=representative_id, allocated=0, total_amount=ZERO)

            await self._commit(run, token)

        amount = total(line.amount for line in lines)
        logger.info(
            "Run %s allocated %s from %d payment(s) for representative %s",
            run.run_id, amount, len(run.payment_updates), representative_id
        )
        return AllocationRunResponse(
            representative_id=representative_id,
            allocated=len(run.payment_updates),
            total_amount=amount,
            allocations=lines
        )

    async def auto_allocate_all(self) -> BatchAllocationResponse:
        """Run auto_allocate for every representative with unallocated payments."""
        representative_ids = await self.ledger.representative_ids_with_unallocated_payments()

        results: List[AllocationRunResponse] = []
        failures: List[AllocationFailure] = []
        for representative_id in representative_ids:
            try:
                results.append(await self.auto_allocate(representative_id))
            except LedgerError as exc:
                logger.warning("Batch allocation failed for representative %s: %s", representative_id, exc.message)
                failures.append(AllocationFailure(
                    representative_id=representative_id,
                    error=exc.message,
                    code=exc.code
                ))

        return BatchAllocationResponse(
            representatives=len(representative_ids),
            allocated=sum(r.allocated for r in results),
            total_amount=total(r.total_amount for r in results),
            results=results,
            failures=failures
        )

    async def reverse_payment_allocations(self, payment_id: str) -> AllocationReversalResponse:
        """
        Undo every live allocation of a payment with compensating rows.

        Existing rows are never modified. The payment becomes unallocated
        and the invoices it paid are reopened.
        """
        payment = await self.ledger.get_payment(payment_id)
        if payment is None:
            raise PaymentNotFound(payment_id)

        async with self.lock.hold(payment.representative_id) as token:
            payment = await self.ledger.get_payment(payment_id)
            rows = await self.ledger.list_allocations_for_payment(payment_id)

            reversed_ids = {row.reversal_of for row in rows if row.reversal_of}
            live = [row for row in rows if row.reversal_of is None and row.id not in reversed_ids]
            if not live:
                return AllocationReversalResponse(payment_id=payment_id, reversed=0, total_amount=ZERO)

            run_id = uuid.uuid4().hex
            per_invoice: Dict[str, Decimal] = {}
            compensations = []
            for row in live:
                compensations.append(Allocation(
                    run_id=run_id,
                    payment_id=row.payment_id,
                    invoice_id=row.invoice_id,
                    representative_id=row.representative_id,
                    allocated_amount=-row.allocated_amount,
                    reversal_of=row.id
                ))
                per_invoice[row.invoice_id] = per_invoice.get(row.invoice_id, ZERO) + row.allocated_amount

            invoice_updates = []
            for invoice_id, amount in per_invoice.items():
                invoice = await self.ledger.get_invoice(invoice_id)
                if invoice is None:
                    raise PersistenceFailure(
                        f"Invoice {invoice_id} allocated from payment {payment_id} no longer exists"
                    )
                paid = invoice.paid_amount - amount
                invoice_updates.append(InvoiceUpdate(
                    invoice_id=invoice_id,
                    expected_paid_amount=invoice.paid_amount,
                    paid_amount=paid,
                    status=derive_invoice_status(invoice.amount, paid, invoice.due_date, self.today()).value
                ))

            reversed_total = total(per_invoice.values())
            run = AllocationRun(
                run_id=run_id,
                representative_id=payment.representative_id,
                allocations=compensations,
                invoice_updates=invoice_updates,
                payment_updates=[PaymentUpdate(
                    payment_id=payment_id,
                    expected_allocated_amount=payment.allocated_amount,
                    allocated_amount=payment.allocated_amount - reversed_total,
                    is_allocated=False
                )]
            )
            await self._commit(run, token)

        logger.info("Reversed %d allocation(s) totalling %s for payment %s", len(live), reversed_total, payment_id)
        return AllocationReversalResponse(payment_id=payment_id, reversed=len(live), total_amount=reversed_total)

    # ===== QUERIES =====

    async def list_unallocated(self, representative_id: Optional[str] = None) -> List[Payment]:
        return await self.ledger.list_unallocated_payments(representative_id)

    async def list_payments(self, representative_id: str) -> List[Payment]:
        await self._get_representative(representative_id)
        return await self.ledger.list_payments(representative_id)

    async def list_invoices(self, representative_id: str) -> List[Invoice]:
        """Invoices with status re-derived for today (overdue moves with the calendar)."""
        await self._get_representative(representative_id)
        invoices = await self.ledger.list_invoices(representative_id)
        today = self.today()
        for invoice in invoices:
            invoice.status = invoice.current_status(today).value
        return invoices

    async def allocation_summary(self, representative_id: Optional[str] = None) -> AllocationSummaryResponse:
        if representative_id is not None:
            await self._get_representative(representative_id)
        payments = await self.ledger.list_payments(representative_id)
        allocated = [p for p in payments if p.is_allocated]

        return AllocationSummaryResponse(
            total_payments=len(payments),
            allocated_payments=len(allocated),
            unallocated_payments=len(payments) - len(allocated),
            total_paid_amount=total(p.allocated_amount for p in payments),
            total_unallocated_amount=total(p.remaining_amount() for p in payments)
        )

    async def allocation_details(self, payment_id: str) -> PaymentAllocationDetails:
        payment = await self.ledger.get_payment(payment_id)
        if payment is None:
            raise PaymentNotFound(payment_id)
        rows = await self.ledger.list_allocations_for_payment(payment_id)
        return PaymentAllocationDetails(
            payment=PaymentResponse.from_payment(payment),
            allocations=[AllocationResponse.model_validate(row.model_dump()) for row in rows]
        )

    # ===== PRIVATE HELPERS =====

    async def _get_representative(self, representative_id: str) -> Representative:
        representative = await self.representatives.get(representative_id)
        if representative is None:
            raise RepresentativeNotFound(representative_id)
        return representative

    def _plan_run(
        self,
        representative_id: str,
        payments: List[Payment],
        invoices: List[Invoice]
    ) -> Tuple[AllocationRun, List[AllocationLine]]:
        """Plan every payment in order; each plan shrinks what the next one sees."""
        run_id = uuid.uuid4().hex
        remaining = {invoice.id: invoice.remaining_amount() for invoice in invoices}

        allocations: List[Allocation] = []
        lines: List[AllocationLine] = []
        payment_updates: List[PaymentUpdate] = []

        for payment in payments:
            if not any(amount > 0 for amount in remaining.values()):
                break
            if payment.remaining_amount() <= 0:
                logger.warning("Payment %s is marked unallocated but has nothing left", payment.id)
                continue

            view = [
                OpenInvoice(invoice_id=invoice.id, issue_date=invoice.issue_date, remaining_amount=remaining[invoice.id])
                for invoice in invoices
            ]
            plan = allocate(payment.id, payment.remaining_amount(), view)
            if plan.is_empty():
                continue

            for planned in plan.allocations:
                remaining[planned.invoice_id] -= planned.amount
                allocations.append(Allocation(
                    run_id=run_id,
                    payment_id=payment.id,
                    invoice_id=planned.invoice_id,
                    representative_id=representative_id,
                    allocated_amount=planned.amount
                ))
                lines.append(AllocationLine(payment_id=payment.id, invoice_id=planned.invoice_id, amount=planned.amount))

            allocated = payment.allocated_amount + plan.total
            payment_updates.append(PaymentUpdate(
                payment_id=payment.id,
                expected_allocated_amount=payment.allocated_amount,
                allocated_amount=allocated,
                is_allocated=allocated >= payment.amount
            ))

        today = self.today()
        invoice_updates = []
        for invoice in invoices:
            if remaining[invoice.id] == invoice.remaining_amount():
                continue
            paid = invoice.amount - remaining[invoice.id]
            invoice_updates.append(InvoiceUpdate(
                invoice_id=invoice.id,
                expected_paid_amount=invoice.paid_amount,
                paid_amount=paid,
                status=derive_invoice_status(invoice.amount, paid, invoice.due_date, today).value
            ))

        run = AllocationRun(
            run_id=run_id,
            representative_id=representative_id,
            allocations=allocations,
            invoice_updates=invoice_updates,
            payment_updates=payment_updates
        )
        return run, lines

    async def _commit(self, run: AllocationRun, token: str) -> None:
        """
        Renew the lease, then commit the run even if the caller is cancelled
        meanwhile.

        The lock is released by the caller's ``async with``; waiting for the
        commit here keeps the run inside the lock.
        """
        await self.lock.renew(run.representative_id, token)
        commit = asyncio.ensure_future(self.ledger.commit_allocation_run(run))
        try:
            await asyncio.shield(commit)
        except asyncio.CancelledError:
            logger.warning("Caller cancelled during run %s; finishing commit first", run.run_id)
            await commit
            raise
