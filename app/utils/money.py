"""Fixed-point money helpers. Amounts never pass through float."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Union

from app.core.exceptions import InvalidAmount

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# numeric(15,2): 13 integer digits, 2 fractional
MAX_INTEGER_DIGITS = 13

AmountInput = Union[str, int, Decimal]


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: AmountInput) -> Decimal:
    """
    Parse a decimal string (or int / Decimal) into a two-place Decimal.

    Rejects floats, non-numeric strings, NaN / Infinity, negative values,
    fractions of a cent and anything wider than numeric(15,2). The value
    is never rounded. Zero is accepted here; use require_positive where
    zero is invalid.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmount(f"Amount must be a decimal string, got {type(value).__name__}")
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            raise InvalidAmount("Amount is empty")
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(f"Amount {value!r} is not a number")
    if not amount.is_finite():
        raise InvalidAmount(f"Amount {value!r} is not a finite number")
    if amount < 0:
        raise InvalidAmount(f"Amount {value!r} is negative")
    if amount and amount.adjusted() >= MAX_INTEGER_DIGITS:
        raise InvalidAmount(f"Amount {value!r} has more than {MAX_INTEGER_DIGITS} integer digits")

    try:
        cents = amount.quantize(CENT)
    except InvalidOperation:
        raise InvalidAmount(f"Amount {value!r} is out of range")
    if cents != amount:
        raise InvalidAmount(f"Amount {value!r} has fractions of a cent")
    return cents


def require_positive(amount: Decimal, what: str = "Amount") -> Decimal:
    if amount is None or amount <= 0:
        raise InvalidAmount(f"{what} must be positive, got {amount}")
    return amount


def total(amounts: Iterable[Decimal]) -> Decimal:
    return quantize(sum(amounts, ZERO))
