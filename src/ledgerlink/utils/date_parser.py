"""Date parsing utilities."""

from datetime import date, datetime
from typing import Optional
from dateutil import parser as date_parser


def parse_date(value: str | date | datetime, dayfirst: bool = False) -> date:
    """Parse a date value into a date object.

    Accepts date and datetime objects as-is and strings in any format
    dateutil understands ("2024-01-15", "January 15, 2024", "15/01/2024"
    with ``dayfirst=True``, ...).

    Args:
        value: Date, datetime or date string
        dayfirst: Read ambiguous numeric dates as day/month

    Returns:
        Date object

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Could not parse date '{value}'")

    try:
        return date_parser.parse(value.strip(), dayfirst=dayfirst).date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{value}': {e}")


def try_parse_date(value: str | date | datetime | None, dayfirst: bool = False) -> Optional[date]:
    """Parse a date value, returning None when it is missing or invalid."""
    if value is None:
        return None
    try:
        return parse_date(value, dayfirst=dayfirst)
    except ValueError:
        return None
