from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.locks import RepresentativeLock
from app.db.mongo import get_db
from app.repositories.ledger_repo import LedgerRepository
from app.repositories.representative_repo import RepresentativeRepository
from app.services.allocation_service import AllocationService
from app.services.reconciliation_service import ReconciliationService


def get_representative_repo(db: AsyncIOMotorDatabase = Depends(get_db)) -> RepresentativeRepository:
    return RepresentativeRepository(db)


def get_allocation_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> AllocationService:
    return AllocationService(LedgerRepository(db), RepresentativeRepository(db), RepresentativeLock(db))


def get_reconciliation_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> ReconciliationService:
    return ReconciliationService(LedgerRepository(db), RepresentativeRepository(db), RepresentativeLock(db))
