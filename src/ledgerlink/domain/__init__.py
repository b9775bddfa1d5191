"""Domain layer for ledgerlink application.

Services that take a ``Database`` are imported from their own modules
(``ledgerlink.domain.import_session`` and friends); only the pure parts are
re-exported here so the database layer can import entities freely.
"""

from ledgerlink.domain.account_resolver import AccountResolver, AccountAnalysis, MatchType
from ledgerlink.domain.entity_matcher import EntityMatcher, MatchResult
from ledgerlink.domain.journal_validator import (
    JournalEntryCandidate,
    JournalLineCandidate,
    validate_journal_entry,
)

__all__ = [
    "AccountResolver",
    "AccountAnalysis",
    "MatchType",
    "EntityMatcher",
    "MatchResult",
    "JournalEntryCandidate",
    "JournalLineCandidate",
    "validate_journal_entry",
]
