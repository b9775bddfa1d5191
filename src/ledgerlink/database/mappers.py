"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, making it easy to change when
the database schema changes.
"""

from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional

from ledgerlink.domain import entities as domain
from ledgerlink.database.models import (
    Client as ORMClient,
    Account as ORMAccount,
    ImportSession as ORMImportSession,
    ExtractedRow as ORMExtractedRow,
    AccountMapping as ORMAccountMapping,
    ImportProgress as ORMImportProgress,
    JournalEntry as ORMJournalEntry,
    JournalLine as ORMJournalLine,
    Contact as ORMContact,
    Bill as ORMBill,
    Invoice as ORMInvoice,
    BankTransaction as ORMBankTransaction,
)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps (SQLite drops the offset)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _money(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(value)


def client_to_domain(orm_client: ORMClient) -> domain.Client:
    """Convert SQLAlchemy Client model to domain Client entity."""
    return domain.Client(
        id=orm_client.id,
        name=orm_client.name,
        created_at=as_utc(orm_client.created_at),
    )


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        client_id=orm_account.client_id,
        number=orm_account.number,
        name=orm_account.name,
        account_type=domain.AccountType(orm_account.account_type),
        is_active=bool(orm_account.is_active),
        created_at=as_utc(orm_account.created_at),
    )


def import_session_to_domain(orm_session: ORMImportSession) -> domain.ImportSession:
    """Convert SQLAlchemy ImportSession model to domain ImportSession entity."""
    return domain.ImportSession(
        id=orm_session.id,
        client_id=orm_session.client_id,
        status=domain.SessionStatus(orm_session.status),
        stage=domain.SessionStage(orm_session.stage),
        created_at=as_utc(orm_session.created_at),
        updated_at=as_utc(orm_session.updated_at),
        file_name=orm_session.file_name,
        error_message=orm_session.error_message,
    )


def extracted_row_to_domain(orm_row: ORMExtractedRow) -> domain.ExtractedRow:
    """Convert SQLAlchemy ExtractedRow model to domain ExtractedRow entity."""
    return domain.ExtractedRow(
        account_ref=orm_row.account_ref,
        date=orm_row.date,
        description=orm_row.description,
        debit=_money(orm_row.debit),
        credit=_money(orm_row.credit),
        reference=orm_row.reference,
        account_name=orm_row.account_name,
    )


def account_mapping_to_domain(orm_mapping: ORMAccountMapping) -> domain.AccountMapping:
    """Convert SQLAlchemy AccountMapping model to domain AccountMapping entity."""
    return domain.AccountMapping(
        account_ref=orm_mapping.account_ref,
        action=domain.MappingAction(orm_mapping.action),
        target_account_id=orm_mapping.target_account_id,
        notes=orm_mapping.notes or "",
    )


def progress_to_domain(orm_progress: ORMImportProgress) -> domain.ProgressRecord:
    """Convert SQLAlchemy ImportProgress model to domain ProgressRecord entity."""
    return domain.ProgressRecord(
        session_id=orm_progress.session_id,
        client_id=orm_progress.client_id,
        total=orm_progress.total,
        imported=orm_progress.imported,
        skipped=orm_progress.skipped,
        current_entry=orm_progress.current_entry,
        start_time=as_utc(orm_progress.start_time),
        updated_at=as_utc(orm_progress.updated_at),
        is_active=bool(orm_progress.is_active),
    )


def journal_line_to_domain(orm_line: ORMJournalLine) -> domain.JournalLine:
    """Convert SQLAlchemy JournalLine model to domain JournalLine entity."""
    return domain.JournalLine(
        id=orm_line.id,
        entry_id=orm_line.entry_id,
        account_id=orm_line.account_id,
        debit_amount=_money(orm_line.debit_amount),
        credit_amount=_money(orm_line.credit_amount),
        description=orm_line.description,
        memo=orm_line.memo,
    )


def journal_entry_to_domain(orm_entry: ORMJournalEntry) -> domain.JournalEntry:
    """Convert SQLAlchemy JournalEntry model (with lines) to domain entity."""
    return domain.JournalEntry(
        id=orm_entry.id,
        client_id=orm_entry.client_id,
        session_id=orm_entry.session_id,
        description=orm_entry.description,
        entry_date=orm_entry.entry_date,
        reference_number=orm_entry.reference_number,
        created_at=as_utc(orm_entry.created_at),
        lines=tuple(journal_line_to_domain(line) for line in orm_entry.lines),
    )


def contact_to_domain(orm_contact: ORMContact) -> domain.Contact:
    """Convert SQLAlchemy Contact model to domain Contact entity."""
    return domain.Contact(
        id=orm_contact.id,
        client_id=orm_contact.client_id,
        name=orm_contact.name,
        company_name=orm_contact.company_name,
    )


def bill_to_domain(orm_bill: ORMBill) -> domain.Bill:
    """Convert SQLAlchemy Bill model to domain Bill entity."""
    return domain.Bill(
        id=orm_bill.id,
        client_id=orm_bill.client_id,
        contact_id=orm_bill.contact_id,
        bill_number=orm_bill.bill_number,
        bill_date=orm_bill.bill_date,
        total_amount=_money(orm_bill.total_amount),
        status=domain.DocumentStatus(orm_bill.status or "open"),
        bank_transaction_id=orm_bill.bank_transaction_id,
    )


def invoice_to_domain(orm_invoice: ORMInvoice) -> domain.Invoice:
    """Convert SQLAlchemy Invoice model to domain Invoice entity."""
    return domain.Invoice(
        id=orm_invoice.id,
        client_id=orm_invoice.client_id,
        contact_id=orm_invoice.contact_id,
        invoice_number=orm_invoice.invoice_number,
        invoice_date=orm_invoice.invoice_date,
        total_amount=_money(orm_invoice.total_amount),
        status=domain.DocumentStatus(orm_invoice.status or "open"),
        bank_transaction_id=orm_invoice.bank_transaction_id,
    )


def bank_transaction_to_domain(orm_txn: ORMBankTransaction) -> domain.BankTransaction:
    """Convert SQLAlchemy BankTransaction model to domain BankTransaction entity."""
    return domain.BankTransaction(
        id=orm_txn.id,
        client_id=orm_txn.client_id,
        date=orm_txn.date,
        description=orm_txn.description,
        debit_amount=_money(orm_txn.debit_amount),
        credit_amount=_money(orm_txn.credit_amount),
        reference=orm_txn.reference,
    )
