"""Bill / invoice matching for bank transactions.

The same weighted scorer serves both sides of the books: money going out is
scored against bills, money coming in against invoices.

Score components:
    amount  0-50  difference within 1% / 5% / 10% of the candidate amount
    date    0-30  within 7 / 14 / 30 days
    name    0-30  contact name and company name found in the description
                  (20 each, capped)

Money coming in can only settle an invoice and money going out a bill; a
transaction with both sides or no amount set gets no match. Paid documents
are never candidates. The total is clamped to 100. Results are advisory and
recomputed on demand.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union

from ledgerlink.config import MatchingConfig
from ledgerlink.domain.entities import BankTransaction, Bill, Contact, Invoice

Candidate = Union[Bill, Invoice]

AMOUNT_TIERS = (
    (Decimal("0.01"), 50),
    (Decimal("0.05"), 35),
    (Decimal("0.10"), 20),
)
DATE_TIERS = (
    (7, 30),
    (14, 20),
    (30, 10),
)
NAME_HIT_POINTS = 20
NAME_CAP = 30
MAX_SCORE = 100


@dataclass(frozen=True)
class MatchCandidate:
    """A scored candidate that cleared the threshold."""

    counterpart_id: int
    contact_id: Optional[int]
    score: int
    amount_points: int
    date_points: int
    name_points: int


@dataclass(frozen=True)
class MatchResult:
    """Best candidate plus every other candidate for user override."""

    counterpart_id: int
    contact_id: Optional[int]
    score: int
    all_matches: tuple[MatchCandidate, ...]


def candidate_kind(transaction: BankTransaction) -> Optional[type]:
    """Document type a transaction can settle: Invoice for money in, Bill for money out."""
    if transaction.amount <= 0:
        return None
    if transaction.is_income:
        return Invoice
    if transaction.is_expense:
        return Bill
    return None


def score_amount(transaction_amount: Decimal, candidate_amount: Decimal) -> int:
    """Amount component (0-50), tiers relative to the candidate amount."""
    transaction_amount = abs(transaction_amount)
    candidate_amount = abs(candidate_amount)
    if transaction_amount == 0 or candidate_amount == 0:
        return 0
    diff = abs(transaction_amount - candidate_amount)
    for ratio, points in AMOUNT_TIERS:
        if diff <= candidate_amount * ratio:
            return points
    return 0


def score_date(transaction_date: Optional[date], candidate_date: Optional[date]) -> int:
    """Date component (0-30); missing dates score nothing."""
    if not isinstance(transaction_date, date) or not isinstance(candidate_date, date):
        return 0
    if isinstance(transaction_date, datetime):
        transaction_date = transaction_date.date()
    if isinstance(candidate_date, datetime):
        candidate_date = candidate_date.date()
    days = abs((transaction_date - candidate_date).days)
    for limit, points in DATE_TIERS:
        if days <= limit:
            return points
    return 0


def score_name(description: Optional[str], contact: Optional[Contact]) -> int:
    """Name component (0-30), case-insensitive substring hits."""
    if contact is None or not description:
        return 0
    text = description.casefold()
    points = 0
    for name in (contact.name, contact.company_name):
        needle = (name or "").strip().casefold()
        if needle and needle in text:
            points += NAME_HIT_POINTS
    return min(points, NAME_CAP)


class EntityMatcher:
    """Score and rank bills or invoices for a bank transaction."""

    def __init__(self, config: Optional[MatchingConfig] = None):
        self.config = config or MatchingConfig()

    def breakdown(
        self, transaction: BankTransaction, candidate: Candidate, contact: Optional[Contact]
    ) -> MatchCandidate:
        """Score one candidate and keep the component points."""
        amount_points = score_amount(transaction.amount, candidate.total_amount)
        date_points = score_date(transaction.date, candidate.document_date)
        name_points = score_name(transaction.description, contact)
        return MatchCandidate(
            counterpart_id=candidate.id,
            contact_id=candidate.contact_id,
            score=min(MAX_SCORE, amount_points + date_points + name_points),
            amount_points=amount_points,
            date_points=date_points,
            name_points=name_points,
        )

    def score(
        self, transaction: BankTransaction, candidate: Candidate, contact: Optional[Contact]
    ) -> int:
        """Total score in [0, 100]."""
        return self.breakdown(transaction, candidate, contact).score

    def eligible_pool(
        self,
        transaction: BankTransaction,
        bills: Sequence[Bill],
        invoices: Sequence[Invoice],
    ) -> Sequence[Candidate]:
        """Pick the pool the transaction direction allows.

        Money in is matched against invoices, money out against bills; a
        transaction with both or neither side set has no pool.
        """
        kind = candidate_kind(transaction)
        if kind is Invoice:
            return invoices
        if kind is Bill:
            return bills
        return ()

    def match(
        self,
        transaction: BankTransaction,
        candidate_pool: Iterable[Candidate],
        contacts: Iterable[Contact],
    ) -> Optional[MatchResult]:
        """Rank a candidate pool for one transaction.

        Only candidates of the kind the transaction direction allows are
        scored, and paid documents are passed over. Candidates below
        ``min_score`` are dropped. The rest are sorted by score, highest
        first, ties going to the lowest candidate id.

        Returns:
            MatchResult for the best candidate, or None if nothing qualified
        """
        kind = candidate_kind(transaction)
        if kind is None:
            return None

        contacts_by_id = {c.id: c for c in contacts}
        scored = []
        for candidate in candidate_pool:
            if not isinstance(candidate, kind) or candidate.is_paid:
                continue
            contact = contacts_by_id.get(candidate.contact_id)
            result = self.breakdown(transaction, candidate, contact)
            if result.score >= self.config.min_score:
                scored.append(result)

        if not scored:
            return None

        # sort() is stable, so equal ids keep their enumeration order
        scored.sort(key=lambda m: (-m.score, m.counterpart_id))
        best = scored[0]
        return MatchResult(
            counterpart_id=best.counterpart_id,
            contact_id=best.contact_id,
            score=best.score,
            all_matches=tuple(scored),
        )
