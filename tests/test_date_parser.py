"""Tests for date and amount parsing."""

import pytest
from datetime import date, datetime
from decimal import Decimal

from ledgerlink.utils.amount_parser import parse_amount
from ledgerlink.utils.date_parser import parse_date, try_parse_date


def test_parse_absolute_date():
    """Test parsing ISO dates."""
    assert parse_date("2024-01-15") == date(2024, 1, 15)


def test_parse_long_form_date():
    """Test parsing written-out dates."""
    assert parse_date("January 15, 2024") == date(2024, 1, 15)


def test_parse_dayfirst():
    """Ambiguous numeric dates follow the dayfirst flag."""
    assert parse_date("03/04/2024") == date(2024, 3, 4)
    assert parse_date("03/04/2024", dayfirst=True) == date(2024, 4, 3)


def test_parse_date_objects_pass_through():
    assert parse_date(date(2024, 2, 29)) == date(2024, 2, 29)
    assert parse_date(datetime(2024, 2, 29, 18, 30)) == date(2024, 2, 29)


@pytest.mark.parametrize("value", ["", "   ", "not a date", "2024-13-45"])
def test_parse_invalid_date(value):
    """Test that invalid dates raise ValueError."""
    with pytest.raises(ValueError, match="Could not parse date"):
        parse_date(value)


def test_try_parse_date():
    assert try_parse_date("2024-03-01") == date(2024, 3, 1)
    assert try_parse_date("garbage") is None
    assert try_parse_date(None) is None


@pytest.mark.parametrize(
    "value,expected",
    [
        ("123.45", Decimal("123.45")),
        ("$1,234.56", Decimal("1234.56")),
        ("-$20.00", Decimal("-20.00")),
        ("(45.10)", Decimal("-45.10")),
        ("€ 12", Decimal("12")),
        (7, Decimal("7")),
        (0.1, Decimal("0.1")),
        (Decimal("9.99"), Decimal("9.99")),
    ],
)
def test_parse_amount(value, expected):
    assert parse_amount(value) == expected


def test_parse_amount_blank_uses_default():
    assert parse_amount("  ", default=Decimal("0")) == Decimal("0")
    assert parse_amount(None, default=Decimal("0")) == Decimal("0")
    with pytest.raises(ValueError):
        parse_amount("")


@pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", True])
def test_parse_amount_invalid(value):
    with pytest.raises(ValueError, match="Could not parse amount"):
        parse_amount(value)
