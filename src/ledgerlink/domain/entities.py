"""Domain model entities for ledgerlink.

These are pure data classes representing business concepts, independent of
database schema. The database layer converts its rows into these through
``ledgerlink.database.mappers``.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class AccountType(str, Enum):
    """Chart-of-accounts classification."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"


class SessionStatus(str, Enum):
    """Persisted status of an import session."""

    PENDING = "pending"
    PROCESSING = "processing"
    MATCHED = "matched"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return not self.is_active


ACTIVE_STATUSES = frozenset(
    {SessionStatus.PENDING, SessionStatus.PROCESSING, SessionStatus.MATCHED}
)


class DocumentStatus(str, Enum):
    """Settlement state of a bill or invoice."""

    OPEN = "open"
    PAID = "paid"


class SessionStage(str, Enum):
    """Stage of the staged import a client should render."""

    UPLOAD = "upload"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    MAPPING = "mapping"
    IMPORTING = "importing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class MappingAction(str, Enum):
    """What to do with the rows of one account reference."""

    MAP = "map"
    CREATE = "create"
    SKIP = "skip"


@dataclass(frozen=True)
class Client:
    """Client of the firm whose books are being imported into."""

    id: int
    name: str
    created_at: datetime


@dataclass(frozen=True)
class Account:
    """Chart-of-accounts entry belonging to one client."""

    id: int
    client_id: int
    number: Optional[str]
    name: str
    account_type: AccountType
    is_active: bool
    created_at: datetime

    @property
    def label(self) -> str:
        if self.number:
            return f"{self.number} {self.name}"
        return self.name


@dataclass(frozen=True)
class ImportSession:
    """One file-import attempt and its lifecycle."""

    id: int
    client_id: int
    status: SessionStatus
    stage: SessionStage
    created_at: datetime
    updated_at: datetime
    file_name: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class ExtractedRow:
    """A single general-ledger row as produced by the file parser."""

    account_ref: str
    date: Optional[date]
    description: Optional[str]
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    reference: Optional[str] = None
    account_name: Optional[str] = None


@dataclass(frozen=True)
class AccountMapping:
    """User or automatic decision for one account reference."""

    account_ref: str
    action: MappingAction
    target_account_id: Optional[int] = None
    notes: str = ""


@dataclass(frozen=True)
class ProgressRecord:
    """Counters of an import batch, updated after every row."""

    session_id: int
    client_id: int
    total: int
    imported: int
    skipped: int
    current_entry: Optional[str]
    start_time: datetime
    updated_at: datetime
    is_active: bool

    @property
    def processed(self) -> int:
        return self.imported + self.skipped

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return round(self.processed / self.total * 100)


@dataclass(frozen=True)
class JournalLine:
    """Committed journal entry line."""

    id: int
    entry_id: int
    account_id: int
    debit_amount: Decimal
    credit_amount: Decimal
    description: Optional[str] = None
    memo: Optional[str] = None


@dataclass(frozen=True)
class JournalEntry:
    """Committed journal entry with its lines."""

    id: int
    client_id: int
    session_id: Optional[int]
    description: str
    entry_date: date
    reference_number: Optional[str]
    created_at: datetime
    lines: tuple[JournalLine, ...] = field(default_factory=tuple)

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit_amount for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit_amount for line in self.lines), Decimal("0"))


@dataclass(frozen=True)
class Contact:
    """Vendor or customer of a client."""

    id: int
    client_id: int
    name: str
    company_name: Optional[str] = None


@dataclass(frozen=True)
class Bill:
    """Outstanding bill (expense side)."""

    id: int
    client_id: int
    contact_id: Optional[int]
    bill_number: Optional[str]
    bill_date: Optional[date]
    total_amount: Decimal
    status: DocumentStatus = DocumentStatus.OPEN
    bank_transaction_id: Optional[int] = None

    @property
    def is_paid(self) -> bool:
        return self.status == DocumentStatus.PAID

    @property
    def document_date(self) -> Optional[date]:
        return self.bill_date


@dataclass(frozen=True)
class Invoice:
    """Outstanding invoice (income side)."""

    id: int
    client_id: int
    contact_id: Optional[int]
    invoice_number: Optional[str]
    invoice_date: Optional[date]
    total_amount: Decimal
    status: DocumentStatus = DocumentStatus.OPEN
    bank_transaction_id: Optional[int] = None

    @property
    def is_paid(self) -> bool:
        return self.status == DocumentStatus.PAID

    @property
    def document_date(self) -> Optional[date]:
        return self.invoice_date


@dataclass(frozen=True)
class BankTransaction:
    """Imported bank transaction.

    A positive debit is money coming in, a positive credit is money going
    out, as the bank feed reports them.
    """

    id: int
    client_id: int
    date: Optional[date]
    description: Optional[str]
    debit_amount: Decimal = Decimal("0")
    credit_amount: Decimal = Decimal("0")
    reference: Optional[str] = None

    @property
    def is_income(self) -> bool:
        return self.debit_amount > 0 and self.credit_amount == 0

    @property
    def is_expense(self) -> bool:
        return self.credit_amount > 0 and self.debit_amount == 0

    @property
    def amount(self) -> Decimal:
        return abs(self.debit_amount or self.credit_amount)
