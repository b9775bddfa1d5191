"""Account reference resolution.

Resolves the free-text account column of an extracted ledger against a
client's chart of accounts. Strategies run in a fixed order and the first
one that produces an analysis wins:

1. ``ErrorStrategy``: the reference is malformed
2. ``ExactStrategy``: number, name or "number name" label equal after normalisation
3. ``FuzzyStrategy``: best similarity at or above the configured floor
4. ``MissingStrategy``: nothing close enough, the account can be created

Inactive accounts are never matched. A reference naming one exactly cannot
be created either, since the name is taken; its analysis carries an error
asking for reactivation or a manual mapping.

Everything here is pure: no database access, no exceptions for bad input.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from difflib import SequenceMatcher
from enum import Enum
from functools import cached_property
from typing import Iterable, Optional, Sequence

from ledgerlink.config import ResolverConfig
from ledgerlink.domain.entities import (
    Account,
    AccountMapping,
    AccountType,
    ExtractedRow,
    MappingAction,
)


class MatchType(str, Enum):
    """How an account reference was resolved."""

    EXACT = "exact"
    FUZZY = "fuzzy"
    MISSING = "missing"
    ERROR = "error"


@dataclass(frozen=True)
class SimilarAccount:
    """Alternative account offered for manual mapping."""

    account: Account
    similarity: int


@dataclass(frozen=True)
class AccountAnalysis:
    """Resolution result for one distinct account reference."""

    account_ref: str
    match_type: MatchType
    confidence: int
    can_create: bool
    matched_account: Optional[Account] = None
    similar_accounts: tuple[SimilarAccount, ...] = ()
    transaction_count: int = 0
    account_name: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ValidationSummary:
    """Aggregate counts over the analyses of one file."""

    total_transactions: int
    total_unique_accounts: int
    exact_matches: int
    fuzzy_matches: int
    new_accounts_needed: int
    unresolvable_accounts: int
    match_rate: float
    ready_to_import: bool
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool


def normalize_ref(value: Optional[str]) -> str:
    """Trim, collapse inner whitespace and case-fold."""
    if value is None:
        return ""
    return " ".join(str(value).split()).casefold()


def similarity(a: str, b: str) -> int:
    """Similarity of two normalised strings as an integer percentage."""
    if not a or not b:
        return 0
    return round(SequenceMatcher(None, a, b).ratio() * 100)


def _account_keys(account: Account) -> list[str]:
    keys = [normalize_ref(account.name)]
    if account.number:
        number = normalize_ref(account.number)
        keys.append(number)
        keys.append(f"{number} {keys[0]}")
    return keys


def _tie_break(account: Account) -> tuple:
    return (account.number is None, account.number or "", account.id)


class _Lookup:
    """One reference being resolved against one chart of accounts."""

    def __init__(self, account_ref: str, accounts: Sequence[Account], config: ResolverConfig):
        self.account_ref = account_ref
        self.key = normalize_ref(account_ref)
        self.accounts = [a for a in accounts if a.is_active]
        self.inactive = sorted(
            (a for a in accounts if not a.is_active and self.key in _account_keys(a)),
            key=_tie_break,
        )
        self.config = config

    @cached_property
    def ranked(self) -> list[SimilarAccount]:
        """Active accounts by descending similarity."""
        scored = [
            SimilarAccount(
                account=account,
                similarity=max(similarity(self.key, key) for key in _account_keys(account)),
            )
            for account in self.accounts
        ]
        scored.sort(key=lambda s: (-s.similarity,) + _tie_break(s.account))
        return scored

    @property
    def inactive_error(self) -> Optional[str]:
        if not self.inactive:
            return None
        return (
            f"Account '{self.inactive[0].label}' exists but is inactive; "
            "reactivate it or map to another account"
        )


class ResolutionStrategy(ABC):
    """One step of the ordered resolution chain."""

    match_type: MatchType

    @abstractmethod
    def resolve(self, lookup: _Lookup) -> Optional[AccountAnalysis]:
        """Return an analysis, or None to let the next strategy try."""


class ErrorStrategy(ResolutionStrategy):
    match_type = MatchType.ERROR

    def resolve(self, lookup: _Lookup) -> Optional[AccountAnalysis]:
        problem = None
        if not lookup.key:
            problem = "Account reference is empty"
        elif not any(ch.isalnum() for ch in lookup.key):
            problem = "Account reference has no letters or digits"
        elif len(lookup.key) > lookup.config.max_ref_length:
            problem = f"Account reference is longer than {lookup.config.max_ref_length} characters"
        if problem is None:
            return None
        return AccountAnalysis(
            account_ref=lookup.account_ref,
            match_type=self.match_type,
            confidence=0,
            can_create=False,
            error=problem,
        )


class ExactStrategy(ResolutionStrategy):
    match_type = MatchType.EXACT

    def resolve(self, lookup: _Lookup) -> Optional[AccountAnalysis]:
        matches = [a for a in lookup.accounts if lookup.key in _account_keys(a)]
        if not matches:
            return None
        matches.sort(key=_tie_break)
        return AccountAnalysis(
            account_ref=lookup.account_ref,
            match_type=self.match_type,
            confidence=100,
            can_create=True,
            matched_account=matches[0],
        )


class FuzzyStrategy(ResolutionStrategy):
    match_type = MatchType.FUZZY

    def resolve(self, lookup: _Lookup) -> Optional[AccountAnalysis]:
        floor = lookup.config.fuzzy_floor
        above = [s for s in lookup.ranked if s.similarity >= floor]
        if not above:
            return None
        best = above[0]
        return AccountAnalysis(
            account_ref=lookup.account_ref,
            match_type=self.match_type,
            confidence=best.similarity,
            can_create=lookup.inactive_error is None,
            matched_account=best.account,
            similar_accounts=tuple(above[1 : 1 + lookup.config.similar_limit]),
            error=lookup.inactive_error,
        )


class MissingStrategy(ResolutionStrategy):
    match_type = MatchType.MISSING

    def resolve(self, lookup: _Lookup) -> Optional[AccountAnalysis]:
        # Below-floor candidates are still offered so the user can map by hand
        return AccountAnalysis(
            account_ref=lookup.account_ref,
            match_type=self.match_type,
            confidence=0,
            can_create=lookup.inactive_error is None,
            similar_accounts=tuple(lookup.ranked[: lookup.config.similar_limit]),
            error=lookup.inactive_error,
        )


DEFAULT_STRATEGIES: tuple[ResolutionStrategy, ...] = (
    ErrorStrategy(),
    ExactStrategy(),
    FuzzyStrategy(),
    MissingStrategy(),
)


class AccountResolver:
    """Resolve extracted account references to chart-of-accounts entries."""

    def __init__(
        self,
        config: Optional[ResolverConfig] = None,
        strategies: Sequence[ResolutionStrategy] = DEFAULT_STRATEGIES,
    ):
        self.config = config or ResolverConfig()
        self.strategies = tuple(strategies)

    def resolve(self, account_ref: Optional[str], chart_of_accounts: Sequence[Account]) -> AccountAnalysis:
        """Resolve one account reference.

        Args:
            account_ref: Account code or name as it appears in the file
            chart_of_accounts: The client's accounts, inactive ones included

        Returns:
            AccountAnalysis; malformed references yield ``MatchType.ERROR``
        """
        ref = " ".join((account_ref or "").split())
        lookup = _Lookup(ref, chart_of_accounts, self.config)
        for strategy in self.strategies:
            analysis = strategy.resolve(lookup)
            if analysis is not None:
                return analysis
        # The chain always ends with MissingStrategy; a custom chain may not
        return MissingStrategy().resolve(lookup)

    def analyze_rows(
        self, rows: Iterable[ExtractedRow], chart_of_accounts: Sequence[Account]
    ) -> list[AccountAnalysis]:
        """Resolve every distinct account reference of a set of rows.

        References are grouped after normalisation and reported in the
        order they first appear.
        """
        groups: dict[str, dict] = {}
        for row in rows:
            key = normalize_ref(row.account_ref)
            group = groups.get(key)
            if group is None:
                group = {"ref": row.account_ref, "name": None, "count": 0}
                groups[key] = group
            group["count"] += 1
            if group["name"] is None and row.account_name and row.account_name.strip():
                group["name"] = row.account_name.strip()

        analyses = []
        for group in groups.values():
            analysis = self.resolve(group["ref"], chart_of_accounts)
            analyses.append(
                AccountAnalysis(
                    account_ref=analysis.account_ref,
                    match_type=analysis.match_type,
                    confidence=analysis.confidence,
                    can_create=analysis.can_create,
                    matched_account=analysis.matched_account,
                    similar_accounts=analysis.similar_accounts,
                    transaction_count=group["count"],
                    account_name=group["name"],
                    error=analysis.error,
                )
            )
        return analyses

    def is_auto_accepted(self, analysis: AccountAnalysis) -> bool:
        """Whether the mapping can be applied without asking the user."""
        return is_auto_accepted(analysis, self.config.auto_accept_confidence)

    def default_mapping(self, analysis: AccountAnalysis) -> AccountMapping:
        """Mapping a reviewer starts from for this analysis."""
        return default_mapping(analysis, self.config.auto_accept_confidence)

    def summarize(
        self, analyses: Sequence[AccountAnalysis], rows: Sequence[ExtractedRow]
    ) -> ValidationSummary:
        """Build the validation summary for a file."""
        return summarize(analyses, rows, self.config.auto_accept_confidence)


def is_auto_accepted(analysis: AccountAnalysis, auto_accept_confidence: int = 90) -> bool:
    """Exact matches always; fuzzy matches only above the confidence threshold."""
    if analysis.matched_account is None:
        return False
    if analysis.match_type == MatchType.EXACT:
        return True
    return analysis.match_type == MatchType.FUZZY and analysis.confidence > auto_accept_confidence


def default_mapping(analysis: AccountAnalysis, auto_accept_confidence: int = 90) -> AccountMapping:
    """Apply the auto-accept policy to one analysis."""
    if is_auto_accepted(analysis, auto_accept_confidence):
        if analysis.match_type == MatchType.EXACT:
            notes = "Exact match auto-selected"
        else:
            notes = f"High confidence fuzzy match ({analysis.confidence}%)"
        return AccountMapping(
            account_ref=analysis.account_ref,
            action=MappingAction.MAP,
            target_account_id=analysis.matched_account.id,
            notes=notes,
        )
    return AccountMapping(
        account_ref=analysis.account_ref,
        action=MappingAction.CREATE if analysis.can_create else MappingAction.SKIP,
    )


def summarize(
    analyses: Sequence[AccountAnalysis],
    rows: Sequence[ExtractedRow],
    auto_accept_confidence: int = 90,
) -> ValidationSummary:
    """Aggregate analyses and row totals into a ValidationSummary."""
    exact = sum(1 for a in analyses if a.match_type == MatchType.EXACT)
    fuzzy = sum(1 for a in analyses if a.match_type == MatchType.FUZZY)
    missing = sum(1 for a in analyses if a.match_type == MatchType.MISSING)
    errors = sum(1 for a in analyses if a.match_type == MatchType.ERROR)
    unique = len(analyses)
    match_rate = round((exact + fuzzy) / unique * 100, 1) if unique else 0.0

    total_debits = sum((row.debit for row in rows), Decimal("0"))
    total_credits = sum((row.credit for row in rows), Decimal("0"))

    return ValidationSummary(
        total_transactions=len(rows),
        total_unique_accounts=unique,
        exact_matches=exact,
        fuzzy_matches=fuzzy,
        new_accounts_needed=missing,
        unresolvable_accounts=errors,
        match_rate=match_rate,
        ready_to_import=all(is_auto_accepted(a, auto_accept_confidence) for a in analyses),
        total_debits=total_debits,
        total_credits=total_credits,
        is_balanced=abs(total_debits - total_credits) < Decimal("0.01"),
    )


def infer_account_type(number: Optional[str]) -> AccountType:
    """Guess the type of a new account from a conventional numeric code.

    1xxx assets, 2xxx liabilities, 3xxx equity, 4xxx income, anything else
    (including non-numeric references) expense.
    """
    code = (number or "").strip()
    if not code or not code[0].isdigit():
        return AccountType.EXPENSE
    return {
        "1": AccountType.ASSET,
        "2": AccountType.LIABILITY,
        "3": AccountType.EQUITY,
        "4": AccountType.INCOME,
    }.get(code[0], AccountType.EXPENSE)
