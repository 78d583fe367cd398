from decimal import Decimal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.core.exceptions import InvalidAmount
from app.utils.money import parse_amount, require_positive


class CamelModel(BaseModel):
    """Wire models use camelCase keys; snake_case is accepted on input too."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


def positive_amount(value) -> Decimal:
    """Field validator body: decimal string in, positive two-place Decimal out."""
    try:
        return require_positive(parse_amount(value))
    except InvalidAmount as exc:
        raise ValueError(exc.message)
