"""Utility functions for ledgerlink."""

from ledgerlink.utils.date_parser import parse_date, try_parse_date
from ledgerlink.utils.amount_parser import parse_amount

__all__ = ["parse_date", "try_parse_date", "parse_amount"]
