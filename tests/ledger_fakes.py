"""
In-memory stand-ins for the Mongo repositories and the representative lock.

They keep the same method signatures as LedgerRepository,
RepresentativeRepository and RepresentativeLock so the services can be
exercised without a replica set. Loads return copies, like reads from a
database would, and commits are all-or-nothing.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from app.core.exceptions import (
    ConcurrentAllocationInProgress,
    DuplicateRecord,
    PersistenceFailure,
)
from app.models.allocation import Allocation, AllocationRun
from app.models.invoice import Invoice, OPEN_STATUSES, derive_invoice_status
from app.models.payment import Payment
from app.models.reconciliation import ReconciliationAudit
from app.models.representative import Representative
from app.schemas.invoice import InvoiceCreate
from app.schemas.payment import PaymentCreate
from app.schemas.representative import RepresentativeCreate
from app.utils.money import ZERO, quantize


class LedgerStore:
    def __init__(self):
        self.representatives: Dict[str, Representative] = {}
        self.invoices: Dict[str, Invoice] = {}
        self.payments: Dict[str, Payment] = {}
        self.allocations: List[Allocation] = []
        self.audits: List[ReconciliationAudit] = []
        self._next_id = 0

    def new_id(self) -> str:
        self._next_id += 1
        return f"{self._next_id:024x}"


class InMemoryLedger:
    def __init__(self, store: LedgerStore):
        self.store = store
        self.fail_next_commit = False
        self.commits = 0

    async def create_invoice(self, invoice_in: InvoiceCreate, today: date) -> Invoice:
        if any(i.invoice_number == invoice_in.invoice_number for i in self.store.invoices.values()):
            raise DuplicateRecord(f"Invoice number {invoice_in.invoice_number} already exists")
        invoice = Invoice(**invoice_in.model_dump(), id=self.store.new_id())
        invoice.status = derive_invoice_status(invoice.amount, invoice.paid_amount, invoice.due_date, today).value
        self.store.invoices[invoice.id] = invoice
        return invoice.model_copy(deep=True)

    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        invoice = self.store.invoices.get(invoice_id)
        return invoice.model_copy(deep=True) if invoice else None

    async def list_invoices(self, representative_id: str) -> List[Invoice]:
        invoices = [i for i in self.store.invoices.values() if i.representative_id == representative_id]
        return [i.model_copy(deep=True) for i in sorted(invoices, key=lambda i: (i.issue_date, i.id))]

    async def list_open_invoices(self, representative_id: str) -> List[Invoice]:
        await asyncio.sleep(0)
        return [i for i in await self.list_invoices(representative_id) if i.status in OPEN_STATUSES]

    async def create_payment(self, payment_in: PaymentCreate) -> Payment:
        payment = Payment(**payment_in.model_dump(), id=self.store.new_id())
        self.store.payments[payment.id] = payment
        return payment.model_copy(deep=True)

    async def get_payment(self, payment_id: str) -> Optional[Payment]:
        payment = self.store.payments.get(payment_id)
        return payment.model_copy(deep=True) if payment else None

    async def list_payments(self, representative_id: Optional[str] = None) -> List[Payment]:
        payments = [
            p for p in self.store.payments.values()
            if representative_id is None or p.representative_id == representative_id
        ]
        payments.sort(key=lambda p: (p.payment_date, p.created_at, p.id))
        return [p.model_copy(deep=True) for p in payments]

    async def list_unallocated_payments(self, representative_id: Optional[str] = None) -> List[Payment]:
        await asyncio.sleep(0)
        return [p for p in await self.list_payments(representative_id) if not p.is_allocated]

    async def representative_ids_with_unallocated_payments(self) -> List[str]:
        return sorted({p.representative_id for p in self.store.payments.values() if not p.is_allocated})

    async def list_allocations_for_payment(self, payment_id: str) -> List[Allocation]:
        return [a.model_copy(deep=True) for a in self.store.allocations if a.payment_id == payment_id]

    async def sum_invoice_amounts(self, representative_id: str) -> Decimal:
        return quantize(sum(
            (i.amount for i in self.store.invoices.values() if i.representative_id == representative_id), ZERO
        ))

    async def sum_allocated_amounts(self, representative_id: str) -> Decimal:
        return quantize(sum(
            (a.allocated_amount for a in self.store.allocations if a.representative_id == representative_id), ZERO
        ))

    async def commit_allocation_run(self, run: AllocationRun) -> None:
        await asyncio.sleep(0)
        if self.fail_next_commit:
            self.fail_next_commit = False
            raise PersistenceFailure(f"Allocation run {run.run_id} was rolled back: simulated failure")

        for update in run.invoice_updates:
            if self.store.invoices[update.invoice_id].paid_amount != update.expected_paid_amount:
                raise PersistenceFailure(f"Invoice {update.invoice_id} changed during allocation run {run.run_id}")
        for update in run.payment_updates:
            if self.store.payments[update.payment_id].allocated_amount != update.expected_allocated_amount:
                raise PersistenceFailure(f"Payment {update.payment_id} changed during allocation run {run.run_id}")

        for allocation in run.allocations:
            allocation.id = self.store.new_id()
            self.store.allocations.append(allocation.model_copy(deep=True))
        for update in run.invoice_updates:
            invoice = self.store.invoices[update.invoice_id]
            invoice.paid_amount = update.paid_amount
            invoice.status = update.status
        for update in run.payment_updates:
            payment = self.store.payments[update.payment_id]
            payment.allocated_amount = update.allocated_amount
            payment.is_allocated = update.is_allocated
        self.commits += 1


class InMemoryRepresentatives:
    def __init__(self, store: LedgerStore):
        self.store = store
        self.lost_races = 0

    async def create(self, representative_in: RepresentativeCreate) -> Representative:
        if any(r.code == representative_in.code for r in self.store.representatives.values()):
            raise DuplicateRecord(f"Representative code {representative_in.code} already exists")
        representative = Representative(**representative_in.model_dump(), id=self.store.new_id())
        self.store.representatives[representative.id] = representative
        return representative.model_copy(deep=True)

    async def get(self, representative_id: str) -> Optional[Representative]:
        representative = self.store.representatives.get(representative_id)
        return representative.model_copy(deep=True) if representative else None

    async def compare_and_set_totals(self, representative_id, expected_debt, expected_sales, new_debt, new_sales) -> bool:
        representative = self.store.representatives[representative_id]
        if self.lost_races:
            self.lost_races -= 1
            return False
        if representative.total_debt != expected_debt or representative.total_sales != expected_sales:
            return False
        representative.total_debt = new_debt
        representative.total_sales = new_sales
        return True

    async def insert_audit(self, audit: ReconciliationAudit) -> ReconciliationAudit:
        audit.id = self.store.new_id()
        self.store.audits.append(audit.model_copy(deep=True))
        return audit

    async def list_audits(self, representative_id: str) -> List[ReconciliationAudit]:
        audits = [a for a in self.store.audits if a.representative_id == representative_id]
        return list(reversed(audits))


class InMemoryLock:
    """Per-representative asyncio locks with the same timeout contract as RepresentativeLock."""

    def __init__(self, timeout: float = 1.0):
        self.timeout = timeout
        self.locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.acquisitions = 0
        self.renewals = 0
        self.lose_lease = False

    async def renew(self, representative_id: str, token: str) -> None:
        if self.lose_lease:
            raise ConcurrentAllocationInProgress(representative_id)
        self.renewals += 1

    @asynccontextmanager
    async def hold(self, representative_id: str):
        lock = self.locks[representative_id]
        try:
            await asyncio.wait_for(lock.acquire(), self.timeout)
        except asyncio.TimeoutError:
            raise ConcurrentAllocationInProgress(representative_id)
        self.acquisitions += 1
        try:
            yield representative_id
        finally:
            lock.release()
