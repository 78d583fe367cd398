from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from app.schemas.base import CamelModel


class RepresentativeCreate(CamelModel):
    code: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    owner_name: Optional[str] = None
    phone: Optional[str] = None


class RepresentativeResponse(CamelModel):
    id: str
    code: str
    name: str
    owner_name: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool
    total_debt: Decimal
    total_sales: Decimal
    created_at: datetime
    updated_at: datetime
