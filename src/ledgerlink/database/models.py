"""SQLAlchemy models for ledgerlink database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Client(Base):
    """Client model."""

    __tablename__ = "clients"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    # Relationships
    accounts = relationship("Account", back_populates="client", cascade="all, delete-orphan")


class Account(Base):
    """Chart-of-accounts model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    number = Column(String, nullable=True)
    name = Column(String, nullable=False)
    account_type = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("client_id", "number", name="uq_account_client_number"),
        UniqueConstraint("client_id", "name", name="uq_account_client_name"),
    )

    # Relationships
    client = relationship("Client", back_populates="accounts")


class ImportSession(Base):
    """Import session model."""

    __tablename__ = "import_sessions"

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    status = Column(String, nullable=False)
    stage = Column(String, nullable=False)
    file_name = Column(String, nullable=True)
    error_message = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    # Relationships
    rows = relationship(
        "ExtractedRow",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ExtractedRow.row_number",
    )
    mappings = relationship("AccountMapping", back_populates="session", cascade="all, delete-orphan")


class ExtractedRow(Base):
    """Row extracted from an uploaded file, kept for the session's lifetime."""

    __tablename__ = "extracted_rows"

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey("import_sessions.id"), nullable=False, index=True)
    row_number = Column(Integer, nullable=False)
    account_ref = Column(String, nullable=False)
    account_name = Column(String, nullable=True)
    date = Column(Date, nullable=True)
    description = Column(String, nullable=True)
    debit = Column(Numeric(14, 2), nullable=False, default=0)
    credit = Column(Numeric(14, 2), nullable=False, default=0)
    reference = Column(String, nullable=True)

    # Relationships
    session = relationship("ImportSession", back_populates="rows")


class AccountMapping(Base):
    """Mapping decision for one account reference of a session."""

    __tablename__ = "account_mappings"

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey("import_sessions.id"), nullable=False)
    account_ref = Column(String, nullable=False)
    action = Column(String, nullable=False)
    target_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    notes = Column(String, nullable=False, default="")

    __table_args__ = (UniqueConstraint("session_id", "account_ref", name="uq_mapping_session_ref"),)

    # Relationships
    session = relationship("ImportSession", back_populates="mappings")


class ImportProgress(Base):
    """Progress counters of an import batch."""

    __tablename__ = "import_progress"

    session_id = Column(Integer, ForeignKey("import_sessions.id"), primary_key=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    total = Column(Integer, nullable=False)
    imported = Column(Integer, nullable=False, default=0)
    skipped = Column(Integer, nullable=False, default=0)
    current_entry = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    start_time = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class JournalEntry(Base):
    """Journal entry model."""

    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("import_sessions.id"), nullable=True)
    description = Column(String, nullable=False)
    entry_date = Column(Date, nullable=False)
    reference_number = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    # Relationships
    lines = relationship(
        "JournalLine",
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.id",
    )


class JournalLine(Base):
    """Journal entry line model."""

    __tablename__ = "journal_lines"

    id = Column(Integer, primary_key=True)
    entry_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    debit_amount = Column(Numeric(14, 2), nullable=False, default=0)
    credit_amount = Column(Numeric(14, 2), nullable=False, default=0)
    description = Column(String, nullable=True)
    memo = Column(String, nullable=True)

    # Relationships
    entry = relationship("JournalEntry", back_populates="lines")


class Contact(Base):
    """Vendor / customer model."""

    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    company_name = Column(String, nullable=True)


class Bill(Base):
    """Bill model."""

    __tablename__ = "bills"

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=True)
    bill_number = Column(String, nullable=True)
    bill_date = Column(Date, nullable=True)
    total_amount = Column(Numeric(14, 2), nullable=False)
    status = Column(String, nullable=False, default="open")
    bank_transaction_id = Column(Integer, ForeignKey("bank_transactions.id"), nullable=True)


class Invoice(Base):
    """Invoice model."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=True)
    invoice_number = Column(String, nullable=True)
    invoice_date = Column(Date, nullable=True)
    total_amount = Column(Numeric(14, 2), nullable=False)
    status = Column(String, nullable=False, default="open")
    bank_transaction_id = Column(Integer, ForeignKey("bank_transactions.id"), nullable=True)


class BankTransaction(Base):
    """Bank feed transaction model."""

    __tablename__ = "bank_transactions"

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    date = Column(Date, nullable=True)
    description = Column(String, nullable=True)
    debit_amount = Column(Numeric(14, 2), nullable=False, default=0)
    credit_amount = Column(Numeric(14, 2), nullable=False, default=0)
    reference = Column(String, nullable=True)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
