"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
from typing import Optional
import re


def parse_amount(amount: str | int | float | Decimal | None, default: Optional[Decimal] = None) -> Decimal:
    """Parse an amount into a Decimal.

    Handles numbers and strings in various formats:
    - "123.45"
    - "$123.45"
    - "-123.45"
    - "-$123.45"
    - "1,234.56"
    - "(123.45)" (negative in parentheses)

    Args:
        amount: Amount as string or number
        default: Returned for a missing or blank amount instead of raising

    Returns:
        Decimal amount

    Raises:
        ValueError: If the amount cannot be parsed
    """
    if isinstance(amount, bool):
        raise ValueError(f"Could not parse amount '{amount}'")
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, int):
        return Decimal(amount)
    if isinstance(amount, float):
        # str() keeps 0.1 as 0.1 instead of its binary expansion
        return Decimal(str(amount))

    if amount is None or not amount.strip():
        if default is not None:
            return default
        raise ValueError("Empty amount string")

    amount_str = amount.strip()

    # Handle parentheses notation (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    # Remove currency symbols
    amount_str = re.sub(r"[$€£¥]", "", amount_str)

    # Remove thousands separators and whitespace
    amount_str = amount_str.replace(",", "").strip()

    try:
        value = Decimal(amount_str)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount}'")
    if not value.is_finite():
        raise ValueError(f"Could not parse amount '{amount}'")
    return -value if is_negative else value
