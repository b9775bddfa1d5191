"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence
from datetime import date
from decimal import Decimal

# Import entities directly; domain/__init__.py only pulls in pure modules
from ledgerlink.domain.entities import (
    Client,
    Account,
    AccountType,
    ImportSession,
    SessionStatus,
    SessionStage,
    ExtractedRow,
    AccountMapping,
    ProgressRecord,
    JournalEntry,
    Contact,
    Bill,
    Invoice,
    BankTransaction,
)


class Database(ABC):
    """Abstract database interface for ledgerlink."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Discard uncommitted work after a failed write."""
        pass

    # Client operations
    @abstractmethod
    def create_client(self, name: str) -> int:
        """Create a client. Returns client ID."""
        pass

    @abstractmethod
    def get_client(self, client_id: int) -> Optional[Client]:
        """Get client by ID."""
        pass

    @abstractmethod
    def list_clients(self) -> list[Client]:
        """List all clients."""
        pass

    # Chart of accounts operations
    @abstractmethod
    def create_account(
        self,
        client_id: int,
        name: str,
        account_type: AccountType,
        number: Optional[str] = None,
    ) -> int:
        """Create a chart-of-accounts entry. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def get_account_by_number(self, client_id: int, number: str) -> Optional[Account]:
        """Get a client's account by its number."""
        pass

    @abstractmethod
    def list_accounts(self, client_id: int, include_inactive: bool = False) -> list[Account]:
        """List a client's chart of accounts."""
        pass

    @abstractmethod
    def set_account_active(self, account_id: int, is_active: bool) -> None:
        """Activate or deactivate an account."""
        pass

    @abstractmethod
    def delete_account(self, account_id: int) -> None:
        """Delete an account."""
        pass

    @abstractmethod
    def get_account_line_count(self, account_id: int) -> int:
        """Get count of journal lines posted to an account."""
        pass

    # Import session operations
    @abstractmethod
    def create_import_session(
        self,
        client_id: int,
        status: SessionStatus,
        stage: SessionStage,
        file_name: Optional[str] = None,
    ) -> int:
        """Create an import session. Returns session ID."""
        pass

    @abstractmethod
    def get_import_session(self, session_id: int) -> Optional[ImportSession]:
        """Get import session by ID, always reading the stored row."""
        pass

    @abstractmethod
    def list_import_sessions(
        self, client_id: int, statuses: Optional[Sequence[SessionStatus]] = None
    ) -> list[ImportSession]:
        """List a client's sessions, newest first, optionally filtered by status."""
        pass

    @abstractmethod
    def update_import_session(
        self,
        session_id: int,
        status: SessionStatus,
        stage: SessionStage,
        error_message: Optional[str] = None,
    ) -> None:
        """Move a session to a new status and stage."""
        pass

    @abstractmethod
    def add_extracted_rows(self, session_id: int, rows: Sequence[ExtractedRow]) -> None:
        """Store a session's extracted rows in order."""
        pass

    @abstractmethod
    def get_extracted_rows(self, session_id: int) -> list[ExtractedRow]:
        """Get a session's extracted rows in extraction order."""
        pass

    @abstractmethod
    def save_account_mapping(self, session_id: int, mapping: AccountMapping) -> None:
        """Insert or replace the mapping for one account reference."""
        pass

    @abstractmethod
    def get_account_mappings(self, session_id: int) -> list[AccountMapping]:
        """Get all mappings of a session."""
        pass

    # Progress operations
    @abstractmethod
    def create_progress(self, session_id: int, client_id: int, total: int) -> None:
        """Create the progress record of a session."""
        pass

    @abstractmethod
    def get_progress(self, session_id: int) -> Optional[ProgressRecord]:
        """Get the progress record of a session."""
        pass

    @abstractmethod
    def update_progress(
        self,
        session_id: int,
        imported: int,
        skipped: int,
        current_entry: Optional[str],
    ) -> None:
        """Store new counters for a session."""
        pass

    @abstractmethod
    def set_progress_active(self, session_id: int, is_active: bool) -> None:
        """Mark a progress record active or inactive."""
        pass

    @abstractmethod
    def delete_progress(self, client_id: int) -> None:
        """Remove every progress record of a client."""
        pass

    # Journal operations
    @abstractmethod
    def create_journal_entry(
        self,
        client_id: int,
        description: str,
        entry_date: date,
        lines: Sequence[dict],
        reference_number: Optional[str] = None,
        session_id: Optional[int] = None,
    ) -> int:
        """Create a journal entry with its lines in one commit. Returns entry ID.

        Each line dict has account_id, debit_amount, credit_amount and
        optional description and memo.
        """
        pass

    @abstractmethod
    def get_journal_entry(self, entry_id: int) -> Optional[JournalEntry]:
        """Get journal entry by ID."""
        pass

    @abstractmethod
    def list_journal_entries(
        self, client_id: int, session_id: Optional[int] = None
    ) -> list[JournalEntry]:
        """List a client's journal entries, optionally for one session."""
        pass

    @abstractmethod
    def find_imported_entries(
        self,
        client_id: int,
        entry_date: date,
        reference_number: Optional[str],
        exclude_session_id: Optional[int] = None,
    ) -> list[JournalEntry]:
        """Entries produced by import sessions with this date and reference.

        Entries of ``exclude_session_id`` are left out.
        """
        pass

    # Reconciliation data
    @abstractmethod
    def create_contact(self, client_id: int, name: str, company_name: Optional[str] = None) -> int:
        """Create a contact. Returns contact ID."""
        pass

    @abstractmethod
    def list_contacts(self, client_id: int) -> list[Contact]:
        """List a client's contacts."""
        pass

    @abstractmethod
    def create_bill(
        self,
        client_id: int,
        total_amount: Decimal,
        contact_id: Optional[int] = None,
        bill_number: Optional[str] = None,
        bill_date: Optional[date] = None,
    ) -> int:
        """Create a bill. Returns bill ID."""
        pass

    @abstractmethod
    def list_bills(self, client_id: int) -> list[Bill]:
        """List a client's bills."""
        pass

    @abstractmethod
    def get_bill(self, bill_id: int) -> Optional[Bill]:
        """Get bill by ID."""
        pass

    @abstractmethod
    def mark_bill_paid(self, bill_id: int, transaction_id: int) -> None:
        """Mark a bill paid by a bank transaction."""
        pass

    @abstractmethod
    def create_invoice(
        self,
        client_id: int,
        total_amount: Decimal,
        contact_id: Optional[int] = None,
        invoice_number: Optional[str] = None,
        invoice_date: Optional[date] = None,
    ) -> int:
        """Create an invoice. Returns invoice ID."""
        pass

    @abstractmethod
    def list_invoices(self, client_id: int) -> list[Invoice]:
        """List a client's invoices."""
        pass

    @abstractmethod
    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        """Get invoice by ID."""
        pass

    @abstractmethod
    def mark_invoice_paid(self, invoice_id: int, transaction_id: int) -> None:
        """Mark an invoice paid by a bank transaction."""
        pass

    @abstractmethod
    def create_bank_transaction(
        self,
        client_id: int,
        date: Optional[date],
        description: Optional[str],
        debit_amount: Decimal = Decimal("0"),
        credit_amount: Decimal = Decimal("0"),
        reference: Optional[str] = None,
    ) -> int:
        """Create a bank transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def get_bank_transaction(self, transaction_id: int) -> Optional[BankTransaction]:
        """Get bank transaction by ID."""
        pass

    @abstractmethod
    def list_bank_transactions(self, client_id: int) -> list[BankTransaction]:
        """List a client's bank transactions."""
        pass
