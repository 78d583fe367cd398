from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import DuplicateRecord
from app.models.reconciliation import ReconciliationAudit
from app.models.representative import Representative
from app.schemas.representative import RepresentativeCreate


class RepresentativeRepository:
    """Representative database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["representatives"]
        self.audits = db["reconciliation_audits"]

    async def create(self, representative_in: RepresentativeCreate) -> Representative:
        """Create a representative with zero aggregates."""
        representative = Representative(**representative_in.model_dump())
        try:
            result = await self.collection.insert_one(
                representative.model_dump(by_alias=True, exclude={"id"})
            )
        except DuplicateKeyError:
            raise DuplicateRecord(f"Representative code {representative.code} already exists")
        representative.id = str(result.inserted_id)
        return representative

    async def get(self, representative_id: str) -> Optional[Representative]:
        """Get representative by ID."""
        if not ObjectId.is_valid(representative_id):
            return None
        doc = await self.collection.find_one({"_id": ObjectId(representative_id)})
        if not doc:
            return None
        doc["_id"] = str(doc["_id"])
        return Representative(**doc)

    async def compare_and_set_totals(
        self,
        representative_id: str,
        expected_debt: Decimal,
        expected_sales: Decimal,
        new_debt: Decimal,
        new_sales: Decimal
    ) -> bool:
        """
        Overwrite total_debt / total_sales only if they still hold the
        values the caller read. Returns False when someone else got there
        first.
        """
        result = await self.collection.update_one(
            {
                "_id": ObjectId(representative_id),
                "total_debt": expected_debt,
                "total_sales": expected_sales
            },
            {
                "$set": {
                    "total_debt": new_debt,
                    "total_sales": new_sales,
                    "updated_at": datetime.now(timezone.utc)
                }
            }
        )
        return result.matched_count == 1

    async def insert_audit(self, audit: ReconciliationAudit) -> ReconciliationAudit:
        result = await self.audits.insert_one(audit.model_dump(by_alias=True, exclude={"id"}))
        audit.id = str(result.inserted_id)
        return audit

    async def list_audits(self, representative_id: str) -> List[ReconciliationAudit]:
        """Newest first."""
        docs = await self.audits.find(
            {"representative_id": representative_id}
        ).sort([("created_at", -1), ("_id", -1)]).to_list(None)
        for doc in docs:
            doc["_id"] = str(doc["_id"])
        return [ReconciliationAudit(**doc) for doc in docs]
