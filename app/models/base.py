from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerDocument(BaseModel):
    """
    Common shape of every stored ledger document.

    ``id`` is the hex string of the Mongo ``_id``; repositories convert
    ObjectId to str before validation.
    """
    id: Optional[str] = Field(default=None, validation_alias="_id", serialization_alias="_id")
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        from_attributes=True
    )
