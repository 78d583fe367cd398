"""
LedgerRepository - invoices, payments and allocation rows.

The only multi-document write is commit_allocation_run, which applies a
whole allocation run inside one MongoDB transaction:
1. Insert the allocation rows
2. Update each touched invoice (paid_amount, status)
3. Update each touched payment (allocated_amount, is_allocated)

Invoice and payment updates are conditional on the value the run was
planned against, so a stale plan aborts instead of double-allocating.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.exceptions import DuplicateRecord, PersistenceFailure
from app.models.allocation import Allocation, AllocationRun
from app.models.invoice import Invoice, OPEN_STATUSES, derive_invoice_status
from app.models.payment import Payment
from app.schemas.invoice import InvoiceCreate
from app.schemas.payment import PaymentCreate
from app.utils.money import ZERO, quantize

logger = logging.getLogger(__name__)

PAYMENT_ORDER = [("payment_date", 1), ("created_at", 1), ("_id", 1)]
INVOICE_ORDER = [("issue_date", 1), ("_id", 1)]


def _oid(value: str) -> Optional[ObjectId]:
    return ObjectId(value) if ObjectId.is_valid(value) else None


def _stringify_id(doc: dict) -> dict:
    doc["_id"] = str(doc["_id"])
    return doc


class LedgerRepository:
    """Repository for invoices, payments and allocations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.invoices = db["invoices"]
        self.payments = db["payments"]
        self.allocations = db["allocations"]

    # ===== INVOICES =====

    async def create_invoice(self, invoice_in: InvoiceCreate, today: date) -> Invoice:
        invoice = Invoice(**invoice_in.model_dump())
        invoice.status = derive_invoice_status(invoice.amount, invoice.paid_amount, invoice.due_date, today).value

        try:
            result = await self.invoices.insert_one(invoice.model_dump(by_alias=True, exclude={"id"}))
        except DuplicateKeyError:
            raise DuplicateRecord(f"Invoice number {invoice.invoice_number} already exists")
        invoice.id = str(result.inserted_id)
        return invoice

    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        oid = _oid(invoice_id)
        if oid is None:
            return None
        doc = await self.invoices.find_one({"_id": oid})
        return Invoice(**_stringify_id(doc)) if doc else None

    async def list_invoices(self, representative_id: str) -> List[Invoice]:
        docs = await self.invoices.find(
            {"representative_id": representative_id}
        ).sort(INVOICE_ORDER).to_list(None)
        return [Invoice(**_stringify_id(doc)) for doc in docs]

    async def list_open_invoices(self, representative_id: str) -> List[Invoice]:
        """Invoices with something left to pay, oldest first."""
        docs = await self.invoices.find({
            "representative_id": representative_id,
            "status": {"$in": OPEN_STATUSES}
        }).sort(INVOICE_ORDER).to_list(None)
        return [Invoice(**_stringify_id(doc)) for doc in docs]

    # ===== PAYMENTS =====

    async def create_payment(self, payment_in: PaymentCreate) -> Payment:
        payment = Payment(**payment_in.model_dump())
        result = await self.payments.insert_one(payment.model_dump(by_alias=True, exclude={"id"}))
        payment.id = str(result.inserted_id)
        return payment

    async def get_payment(self, payment_id: str) -> Optional[Payment]:
        oid = _oid(payment_id)
        if oid is None:
            return None
        doc = await self.payments.find_one({"_id": oid})
        return Payment(**_stringify_id(doc)) if doc else None

    async def list_payments(self, representative_id: Optional[str] = None) -> List[Payment]:
        query = {} if representative_id is None else {"representative_id": representative_id}
        docs = await self.payments.find(query).sort(PAYMENT_ORDER).to_list(None)
        return [Payment(**_stringify_id(doc)) for doc in docs]

    async def list_unallocated_payments(self, representative_id: Optional[str] = None) -> List[Payment]:
        """Payments not yet fully allocated, oldest payment_date first."""
        query = {"is_allocated": False}
        if representative_id is not None:
            query["representative_id"] = representative_id
        docs = await self.payments.find(query).sort(PAYMENT_ORDER).to_list(None)
        return [Payment(**_stringify_id(doc)) for doc in docs]

    async def representative_ids_with_unallocated_payments(self) -> List[str]:
        ids = await self.payments.distinct("representative_id", {"is_allocated": False})
        return sorted(ids)

    # ===== ALLOCATIONS =====

    async def list_allocations_for_payment(self, payment_id: str) -> List[Allocation]:
        docs = await self.allocations.find(
            {"payment_id": payment_id}
        ).sort([("created_at", 1), ("_id", 1)]).to_list(None)
        return [Allocation(**_stringify_id(doc)) for doc in docs]

    async def sum_invoice_amounts(self, representative_id: str) -> Decimal:
        return await self._sum(self.invoices, representative_id, "$amount")

    async def sum_allocated_amounts(self, representative_id: str) -> Decimal:
        """Net of reversals, since compensating rows are negative."""
        return await self._sum(self.allocations, representative_id, "$allocated_amount")

    async def commit_allocation_run(self, run: AllocationRun) -> None:
        """
        Apply a planned run atomically.

        Raises PersistenceFailure if anything fails; the transaction is
        aborted first so no row of the run survives.
        """
        if run.is_empty():
            return

        now = datetime.now(timezone.utc)
        docs = [a.model_dump(by_alias=True, exclude={"id"}) for a in run.allocations]

        try:
            async with await self.db.client.start_session() as session:
                async with session.start_transaction():
                    result = await self.allocations.insert_many(docs, session=session)

                    for update in run.invoice_updates:
                        updated = await self.invoices.update_one(
                            {
                                "_id": ObjectId(update.invoice_id),
                                "paid_amount": update.expected_paid_amount
                            },
                            {
                                "$set": {
                                    "paid_amount": update.paid_amount,
                                    "status": update.status,
                                    "updated_at": now
                                }
                            },
                            session=session
                        )
                        if updated.matched_count != 1:
                            raise PersistenceFailure(
                                f"Invoice {update.invoice_id} changed during allocation run {run.run_id}"
                            )

                    for update in run.payment_updates:
                        updated = await self.payments.update_one(
                            {
                                "_id": ObjectId(update.payment_id),
                                "allocated_amount": update.expected_allocated_amount
                            },
                            {
                                "$set": {
                                    "allocated_amount": update.allocated_amount,
                                    "is_allocated": update.is_allocated,
                                    "updated_at": now
                                }
                            },
                            session=session
                        )
                        if updated.matched_count != 1:
                            raise PersistenceFailure(
                                f"Payment {update.payment_id} changed during allocation run {run.run_id}"
                            )
        except PyMongoError as exc:
            logger.error("Allocation run %s aborted: %s", run.run_id, exc)
            raise PersistenceFailure(f"Allocation run {run.run_id} was rolled back: {exc}") from exc

        for allocation, inserted_id in zip(run.allocations, result.inserted_ids):
            allocation.id = str(inserted_id)

    # ===== PRIVATE HELPERS =====

    async def _sum(self, collection, representative_id: str, field: str) -> Decimal:
        rows = await collection.aggregate([
            {"$match": {"representative_id": representative_id}},
            {"$group": {"_id": None, "total": {"$sum": field}}}
        ]).to_list(None)
        if not rows or rows[0]["total"] is None:
            return ZERO
        return quantize(Decimal(rows[0]["total"]))
