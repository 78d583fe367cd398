from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_allocation_service, get_reconciliation_service, get_representative_repo
from app.core.auth import get_current_operator
from app.main import app
from app.services.allocation_service import AllocationService
from app.services.reconciliation_service import ReconciliationService
from ledger_fakes import InMemoryLedger, InMemoryLock, InMemoryRepresentatives, LedgerStore

TODAY = date(2025, 1, 15)


@pytest.fixture
def store():
    return LedgerStore()


@pytest.fixture
def ledger(store):
    return InMemoryLedger(store)


@pytest.fixture
def representatives(store):
    return InMemoryRepresentatives(store)


@pytest.fixture
def lock():
    return InMemoryLock(timeout=1.0)


@pytest.fixture
def allocation_service(ledger, representatives, lock):
    return AllocationService(ledger, representatives, lock, today=lambda: TODAY)


@pytest.fixture
def reconciliation_service(ledger, representatives, lock):
    return ReconciliationService(ledger, representatives, lock, max_attempts=3)


@pytest.fixture
def client(allocation_service, reconciliation_service, representatives):
    """FastAPI test client backed by the in-memory ledger (no MongoDB, no lifespan)."""
    app.dependency_overrides[get_current_operator] = lambda: "operator-1"
    app.dependency_overrides[get_allocation_service] = lambda: allocation_service
    app.dependency_overrides[get_reconciliation_service] = lambda: reconciliation_service
    app.dependency_overrides[get_representative_repo] = lambda: representatives
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _mock_collection():
    collection = MagicMock()
    for method in (
        "insert_one", "insert_many", "update_one", "find_one",
        "find_one_and_update", "delete_one", "distinct", "create_index",
    ):
        setattr(collection, method, AsyncMock())
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=[])
    collection.find.return_value = cursor
    collection.aggregate.return_value = cursor
    return collection


@pytest.fixture
def mock_db():
    """Motor-shaped database mock: db[name] gives a distinct collection per name."""
    db = MagicMock()
    collections = {}

    def get_collection(name):
        if name not in collections:
            collections[name] = _mock_collection()
        return collections[name]

    db.__getitem__.side_effect = get_collection

    session = MagicMock()
    transaction = MagicMock()
    transaction.__aenter__ = AsyncMock(return_value=None)
    transaction.__aexit__ = AsyncMock(return_value=False)
    session.start_transaction.return_value = transaction

    session_ctx = MagicMock()
    session_ctx.__aenter__ = AsyncMock(return_value=session)
    session_ctx.__aexit__ = AsyncMock(return_value=False)
    db.client.start_session = AsyncMock(return_value=session_ctx)

    db.session = session
    db.transaction = transaction
    return db
