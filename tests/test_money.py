"""Tests for fixed-point money parsing."""
from decimal import Decimal

import pytest

from app.core.exceptions import InvalidAmount
from app.utils.money import parse_amount, require_positive, total


@pytest.mark.parametrize("raw, expected", [
    ("1200000", Decimal("1200000.00")),
    ("1,200,000.5", Decimal("1200000.50")),
    (" 42.10 ", Decimal("42.10")),
    ("3.000", Decimal("3.00")),
    ("9999999999999.99", Decimal("9999999999999.99")),
    (7, Decimal("7.00")),
    (Decimal("0"), Decimal("0.00")),
])
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", [12.5, True, "", "abc", "NaN", "Infinity", "-1"])
def test_parse_amount_rejects(raw):
    with pytest.raises(InvalidAmount):
        parse_amount(raw)


@pytest.mark.parametrize("raw", ["100.005", "42.125", "0.001", "1e-30"])
def test_parse_amount_rejects_fractions_of_a_cent(raw):
    with pytest.raises(InvalidAmount, match="fractions of a cent"):
        parse_amount(raw)


@pytest.mark.parametrize("raw", ["1e30", "1234567890123456", "10000000000000", 10 ** 40])
def test_parse_amount_rejects_too_many_integer_digits(raw):
    with pytest.raises(InvalidAmount, match="integer digits"):
        parse_amount(raw)


def test_require_positive_rejects_zero():
    with pytest.raises(InvalidAmount) as exc_info:
        require_positive(Decimal("0.00"), "Payment amount")
    assert exc_info.value.status_code == 400
    assert exc_info.value.code == "InvalidAmount"


def test_total():
    amount = total([Decimal("0.10"), Decimal("0.20"), Decimal("1000000")])
    assert amount == Decimal("1000000.30")
    assert total([]) == Decimal("0.00")
