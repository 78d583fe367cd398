from datetime import date, datetime
from decimal import Decimal

from pydantic import field_validator

from app.schemas.base import CamelModel, positive_amount


class PaymentCreate(CamelModel):
    representative_id: str
    amount: Decimal
    payment_date: date
    description: str = ""

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, value):
        return positive_amount(value)


class PaymentResponse(CamelModel):
    id: str
    representative_id: str
    amount: Decimal
    payment_date: date
    description: str
    allocated_amount: Decimal
    unallocated_amount: Decimal
    is_allocated: bool
    created_at: datetime

    @classmethod
    def from_payment(cls, payment) -> "PaymentResponse":
        return cls.model_validate({
            **payment.model_dump(),
            "unallocated_amount": payment.remaining_amount()
        })
