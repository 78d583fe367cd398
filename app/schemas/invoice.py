from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator, model_validator

from app.schemas.base import CamelModel, positive_amount


class InvoiceCreate(CamelModel):
    invoice_number: str = Field(..., min_length=1, max_length=64)
    representative_id: str
    amount: Decimal
    issue_date: date
    due_date: Optional[date] = None
    description: str = ""

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, value):
        return positive_amount(value)

    @model_validator(mode="after")
    def check_dates(self):
        if self.due_date is not None and self.due_date < self.issue_date:
            raise ValueError("due_date cannot be before issue_date")
        return self


class InvoiceResponse(CamelModel):
    id: str
    invoice_number: str
    representative_id: str
    amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    status: str
    issue_date: date
    due_date: Optional[date] = None
    description: str
    created_at: datetime

    @classmethod
    def from_invoice(cls, invoice) -> "InvoiceResponse":
        return cls.model_validate({
            **invoice.model_dump(),
            "remaining_amount": invoice.remaining_amount()
        })
