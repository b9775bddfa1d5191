"""Shared pytest fixtures for ledgerlink tests."""

import logging
import tempfile
import os
from datetime import date, datetime, timedelta, UTC
from decimal import Decimal
import pytest

from ledgerlink.config import Settings
from ledgerlink.database.factories import create_sqlite_database
from ledgerlink.domain.account import AccountService
from ledgerlink.domain.client import ClientService
from ledgerlink.domain.entities import AccountType, ExtractedRow
from ledgerlink.domain.import_session import ImportSessionService
from ledgerlink.domain.journal import JournalService
from ledgerlink.domain.reconciliation import ReconciliationService


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def restore_root_logging():
    """CLI invocations install handlers on the root logger; put the old ones back."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def settings():
    """Default settings."""
    return Settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client_service(temp_db):
    """Create a ClientService with a temporary database."""
    return ClientService(temp_db)


@pytest.fixture
def account_service(temp_db):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db)


@pytest.fixture
def journal_service(temp_db):
    """Create a JournalService with a temporary database."""
    return JournalService(temp_db)


@pytest.fixture
def session_service(temp_db, settings, clock):
    """Create an ImportSessionService with a temporary database."""
    return ImportSessionService(temp_db, settings=settings, clock=clock)


@pytest.fixture
def reconciliation_service(temp_db):
    """Create a ReconciliationService with a temporary database."""
    return ReconciliationService(temp_db)


@pytest.fixture
def sample_client(client_service):
    """Create a sample client for testing."""
    client_id = client_service.create_client("Acme Holdings")
    return client_service.get_client(client_id)


@pytest.fixture
def sample_accounts(account_service, sample_client):
    """Small chart of accounts keyed by account number."""
    chart = [
        ("1000", "Cash", AccountType.ASSET),
        ("2000", "Accounts Payable", AccountType.LIABILITY),
        ("4000", "Sales", AccountType.INCOME),
        ("6100", "Office Supplies", AccountType.EXPENSE),
        ("6200", "Rent", AccountType.EXPENSE),
    ]
    accounts = {}
    for number, name, account_type in chart:
        account_id = account_service.create_account(
            client_id=sample_client.id, name=name, account_type=account_type, number=number
        )
        accounts[number] = account_service.get_account(account_id)
    return accounts


def make_row(account_ref, debit="0", credit="0", day=1, description=None, account_name=None):
    """Build an extracted GL row dated in March 2024."""
    return ExtractedRow(
        account_ref=account_ref,
        date=date(2024, 3, day) if day else None,
        description=description if description is not None else f"Posting to {account_ref}",
        debit=Decimal(debit),
        credit=Decimal(credit),
        account_name=account_name,
    )


@pytest.fixture
def matched_rows():
    """Rows whose accounts all exist in ``sample_accounts``."""
    return [
        make_row("1000", debit="500.00", day=1),
        make_row("4000", credit="500.00", day=1),
        make_row("6100", debit="120.00", day=2),
        make_row("1000", credit="120.00", day=2),
    ]


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def write_csv(tmp_path):
    """Write CSV text to a file and return its path."""

    def _write(text: str, name: str = "ledger.csv") -> str:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)

    return _write
