"""Journal entry domain service."""

import logging
from typing import Optional

from ledgerlink.database.base import Database
from ledgerlink.domain.entities import JournalEntry
from ledgerlink.domain.errors import (
    JournalEntryRejected,
    NotFoundError,
    ValidationError,
    account_not_found,
    client_not_found,
)
from ledgerlink.domain.journal_validator import (
    JournalEntryCandidate,
    validate_journal_entry,
)

logger = logging.getLogger(__name__)


class JournalService:
    """Commit journal entries that pass double-entry validation."""

    def __init__(self, db: Database):
        """Initialize journal service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_entry(
        self,
        client_id: int,
        candidate: JournalEntryCandidate,
        session_id: Optional[int] = None,
    ) -> int:
        """Validate and commit a journal entry.

        Only counting lines are stored. Lines with no amount carry nothing to
        post.

        Args:
            client_id: Owning client
            candidate: Proposed entry
            session_id: Import session that produced the entry, if any

        Returns:
            Journal entry ID

        Raises:
            NotFoundError: If the client does not exist
            JournalEntryRejected: If the entry breaks a double-entry rule
            ValidationError: If a line posts to a foreign or inactive account
        """
        if self.db.get_client(client_id) is None:
            raise NotFoundError(client_not_found(client_id))

        errors = validate_journal_entry(candidate)
        if errors:
            raise JournalEntryRejected(errors)

        lines = []
        for line in candidate.counting_lines:
            account = self.db.get_account(line.account_id)
            if account is None or account.client_id != client_id:
                raise ValidationError(account_not_found(line.account_id))
            if not account.is_active:
                raise ValidationError(f"Account {account.label} is inactive")
            lines.append(
                {
                    "account_id": line.account_id,
                    "debit_amount": line.debit_amount,
                    "credit_amount": line.credit_amount,
                    "description": line.description,
                    "memo": line.memo,
                }
            )

        entry_id = self.db.create_journal_entry(
            client_id=client_id,
            description=candidate.description.strip(),
            entry_date=candidate.entry_date,
            lines=lines,
            reference_number=candidate.reference_number,
            session_id=session_id,
        )
        logger.debug(
            "Committed journal entry %s", entry_id,
            extra={"client_id": client_id, "session_id": session_id},
        )
        return entry_id

    def get_entry(self, entry_id: int) -> Optional[JournalEntry]:
        """Get journal entry by ID."""
        return self.db.get_journal_entry(entry_id)

    def list_entries(self, client_id: int, session_id: Optional[int] = None) -> list[JournalEntry]:
        """List a client's journal entries, optionally for one import session."""
        return self.db.list_journal_entries(client_id, session_id=session_id)
