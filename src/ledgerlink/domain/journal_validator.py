"""Double-entry validation of candidate journal entries."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

BALANCE_EPSILON = Decimal("0.01")
MIN_COUNTING_LINES = 2


@dataclass(frozen=True)
class JournalLineCandidate:
    """Proposed journal line; amounts are non-negative."""

    account_id: Optional[int]
    debit_amount: Decimal = Decimal("0")
    credit_amount: Decimal = Decimal("0")
    description: Optional[str] = None
    memo: Optional[str] = None

    @property
    def counts(self) -> bool:
        """Only lines with an account and an amount take part in validation."""
        return bool(self.account_id) and (self.debit_amount > 0 or self.credit_amount > 0)


@dataclass(frozen=True)
class JournalEntryCandidate:
    """Proposed journal entry, validated before it is committed."""

    description: str
    entry_date: Optional[date]
    lines: tuple[JournalLineCandidate, ...] = field(default_factory=tuple)
    reference_number: Optional[str] = None

    @property
    def counting_lines(self) -> list[JournalLineCandidate]:
        return [line for line in self.lines if line.counts]


@dataclass(frozen=True)
class EntryValidationError:
    """One violated rule."""

    code: str
    message: str


def entry_totals(candidate: JournalEntryCandidate) -> tuple[Decimal, Decimal, Decimal]:
    """Return (debits, credits, absolute difference) over counting lines."""
    lines = candidate.counting_lines
    debits = sum((line.debit_amount for line in lines), Decimal("0"))
    credits = sum((line.credit_amount for line in lines), Decimal("0"))
    return debits, credits, abs(debits - credits)


def is_balanced(candidate: JournalEntryCandidate) -> bool:
    """Whether debits equal credits within one cent."""
    return entry_totals(candidate)[2] < BALANCE_EPSILON


def validate_journal_entry(candidate: JournalEntryCandidate) -> list[EntryValidationError]:
    """Check every double-entry rule and report all violations.

    Rules:
        1. description and entry date are present
        2. at least two counting lines
        3. no counting line carries both a debit and a credit
        4. debits equal credits within 0.01

    Returns:
        List of violations; empty when the entry may be saved
    """
    errors: list[EntryValidationError] = []

    if not (candidate.description or "").strip():
        errors.append(EntryValidationError("missing_description", "Description is required"))
    if not candidate.entry_date:
        errors.append(EntryValidationError("missing_entry_date", "Entry date is required"))

    counting = candidate.counting_lines
    if len(counting) < MIN_COUNTING_LINES:
        errors.append(
            EntryValidationError("too_few_lines", "At least 2 lines with amounts are required")
        )

    if any(line.debit_amount > 0 and line.credit_amount > 0 for line in counting):
        errors.append(
            EntryValidationError("debit_and_credit", "Lines cannot have both debit and credit amounts")
        )

    _, _, difference = entry_totals(candidate)
    if difference >= BALANCE_EPSILON:
        errors.append(
            EntryValidationError(
                "unbalanced",
                f"Journal entry must be balanced (debits must equal credits); "
                f"out of balance by {difference.quantize(Decimal('0.01'))}",
            )
        )

    return errors
