"""Readers for already-extracted ledger and bank statement CSV files.

Column names are fixed (case-insensitive, surrounding spaces ignored):

    general ledger:  account, date, description, debit, credit, reference, account_name
    bank statement:  date, description, debit, credit, reference

Only ``account`` is required for a ledger file. Cells that cannot be read
are reported per row; unreadable dates are kept as missing so the import
can skip the row with a proper reason.
"""

import csv
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterator

from ledgerlink.domain.entities import ExtractedRow
from ledgerlink.domain.errors import ValidationError
from ledgerlink.utils.amount_parser import parse_amount
from ledgerlink.utils.date_parser import try_parse_date

GL_COLUMNS = ("account", "date", "description", "debit", "credit", "reference", "account_name")
BANK_COLUMNS = ("date", "description", "debit", "credit", "reference")


@dataclass
class ReadResult:
    """Parsed records plus the problems found on the way."""

    records: list[Any] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _read_rows(csv_file_path: str, required: set[str]) -> Iterator[tuple[int, dict[str, str]]]:
    csv_path = Path(csv_file_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_file_path}")

    with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
        # Try to detect delimiter
        sample = f.read(4096)
        f.seek(0)
        try:
            delimiter = csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            delimiter = ","

        reader = csv.DictReader(f, delimiter=delimiter)
        if reader.fieldnames is None:
            raise ValidationError("CSV file has no columns")

        columns = {name: (name or "").strip().lower() for name in reader.fieldnames}
        missing = required - set(columns.values())
        if missing:
            raise ValidationError(f"CSV file missing required columns: {', '.join(sorted(missing))}")

        for row in reader:
            row_num = reader.line_num
            values = {
                columns[key]: (value or "").strip()
                for key, value in row.items()
                if key in columns and isinstance(value, str)
            }
            if not any(values.values()):
                continue
            yield row_num, values


def _amount(values: dict[str, str], column: str, row_num: int, errors: list[str]) -> Decimal:
    try:
        return parse_amount(values.get(column), default=Decimal("0"))
    except ValueError as e:
        errors.append(f"Row {row_num}: {column}: {e}")
        return Decimal("0")


def read_gl_file(csv_file_path: str, dayfirst: bool = False) -> ReadResult:
    """Read general-ledger rows in file order.

    Args:
        csv_file_path: Path to the CSV file
        dayfirst: Read ambiguous numeric dates as day/month

    Returns:
        ReadResult whose records are ExtractedRow objects

    Raises:
        FileNotFoundError: If the file does not exist
        ValidationError: If the header lacks an ``account`` column
    """
    result = ReadResult()
    for row_num, values in _read_rows(csv_file_path, {"account"}):
        raw_date = values.get("date")
        row_date = try_parse_date(raw_date, dayfirst=dayfirst) if raw_date else None
        if raw_date and row_date is None:
            result.errors.append(f"Row {row_num}: Could not parse date '{raw_date}'")

        result.records.append(
            ExtractedRow(
                account_ref=values.get("account", ""),
                date=row_date,
                description=values.get("description") or None,
                debit=_amount(values, "debit", row_num, result.errors),
                credit=_amount(values, "credit", row_num, result.errors),
                reference=values.get("reference") or None,
                account_name=values.get("account_name") or None,
            )
        )
    return result


def read_bank_file(csv_file_path: str, dayfirst: bool = False) -> ReadResult:
    """Read bank statement lines as dicts ready for storage.

    A positive debit is money in, a positive credit money out.
    """
    result = ReadResult()
    for row_num, values in _read_rows(csv_file_path, {"date", "description"}):
        raw_date = values.get("date")
        txn_date = try_parse_date(raw_date, dayfirst=dayfirst) if raw_date else None
        if raw_date and txn_date is None:
            result.errors.append(f"Row {row_num}: Could not parse date '{raw_date}'")

        result.records.append(
            {
                "date": txn_date,
                "description": values.get("description") or None,
                "debit_amount": _amount(values, "debit", row_num, result.errors),
                "credit_amount": _amount(values, "credit", row_num, result.errors),
                "reference": values.get("reference") or None,
            }
        )
    return result
