"""
Per-representative mutual exclusion backed by a MongoDB lease document.

One document per locked representative in ``representative_locks``:
``{_id: representative_id, owner: token, expires_at: ...}``. The unique
``_id`` is the lock; an expired lease may be taken over so a crashed
holder cannot block a representative forever.

A lease is only extended by an explicit renew, which allocation runs call
right before committing. A holder that stalls past the lease between
renewals can lose the lock; its conditional writes then fail rather than
double-allocate.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.config import settings
from app.core.exceptions import ConcurrentAllocationInProgress, PersistenceFailure

logger = logging.getLogger(__name__)


class RepresentativeLock:
    """Lease lock keyed by representative id."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        timeout: Optional[float] = None,
        lease: Optional[float] = None,
        poll_interval: Optional[float] = None
    ):
        self.collection = db["representative_locks"]
        self.timeout = settings.ALLOCATION_LOCK_TIMEOUT_SECONDS if timeout is None else timeout
        self.lease = settings.ALLOCATION_LOCK_LEASE_SECONDS if lease is None else lease
        self.poll_interval = (
            settings.ALLOCATION_LOCK_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        )

    async def acquire(self, representative_id: str) -> str:
        """
        Take the lease, polling until the timeout.

        Returns the owner token needed for release. Raises
        ConcurrentAllocationInProgress when the timeout passes.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        token = uuid.uuid4().hex

        while True:
            now = datetime.now(timezone.utc)
            lease_doc = {
                "owner": token,
                "acquired_at": now,
                "expires_at": now + timedelta(seconds=self.lease)
            }
            try:
                try:
                    await self.collection.insert_one({"_id": representative_id, **lease_doc})
                    return token
                except DuplicateKeyError:
                    taken = await self.collection.find_one_and_update(
                        {"_id": representative_id, "expires_at": {"$lt": now}},
                        {"$set": lease_doc}
                    )
                    if taken is not None:
                        logger.warning(
                            "Took over expired lock of representative %s from %s",
                            representative_id, taken.get("owner")
                        )
                        return token
            except PyMongoError as exc:
                raise PersistenceFailure(f"Could not acquire lock: {exc}") from exc

            if loop.time() >= deadline:
                raise ConcurrentAllocationInProgress(representative_id)
            await asyncio.sleep(self.poll_interval)

    async def release(self, representative_id: str, token: str) -> None:
        """Drop the lease if we still own it."""
        try:
            result = await self.collection.delete_one({"_id": representative_id, "owner": token})
        except PyMongoError:
            # The lease expires on its own; the original error (if any) matters more
            logger.exception("Failed to release lock of representative %s", representative_id)
            return
        if result.deleted_count == 0:
            logger.warning("Lock of representative %s was lost before release", representative_id)

    async def renew(self, representative_id: str, token: str) -> None:
        """
        Push expires_at a full lease into the future.

        Raises ConcurrentAllocationInProgress if the lease has been taken
        over by someone else.
        """
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.lease)
        try:
            result = await self.collection.update_one(
                {"_id": representative_id, "owner": token},
                {"$set": {"expires_at": expires_at}}
            )
        except PyMongoError as exc:
            raise PersistenceFailure(f"Could not renew lock: {exc}") from exc
        if result.matched_count != 1:
            logger.warning("Lock of representative %s was taken over before renewal", representative_id)
            raise ConcurrentAllocationInProgress(representative_id)

    @asynccontextmanager
    async def hold(self, representative_id: str) -> AsyncIterator[str]:
        token = await self.acquire(representative_id)
        try:
            yield token
        finally:
            await self.release(representative_id, token)
