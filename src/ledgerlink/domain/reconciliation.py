"""Bill and invoice suggestions for stored bank transactions."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from ledgerlink.config import MatchingConfig
from ledgerlink.database.base import Database
from ledgerlink.domain.entities import BankTransaction, Bill, Contact, Invoice
from ledgerlink.domain.entity_matcher import EntityMatcher, MatchResult, candidate_kind
from ledgerlink.domain.errors import ConflictError, NotFoundError, ValidationError, client_not_found

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionMatch:
    """A bank transaction and its best bill or invoice, if any."""

    transaction: BankTransaction
    counterpart_kind: Optional[str]
    result: Optional[MatchResult]


class ReconciliationService:
    """Match a client's bank transactions to outstanding bills and invoices.

    Suggestions are recomputed on every call and never stored.
    """

    def __init__(self, db: Database, config: Optional[MatchingConfig] = None):
        """Initialize reconciliation service.

        Args:
            db: Database instance
            config: Matching threshold settings
        """
        self.db = db
        self.matcher = EntityMatcher(config)

    def _require_client(self, client_id: int) -> None:
        if self.db.get_client(client_id) is None:
            raise NotFoundError(client_not_found(client_id))

    def add_contact(self, client_id: int, name: str, company_name: Optional[str] = None) -> int:
        """Create a vendor or customer contact."""
        self._require_client(client_id)
        if not (name or "").strip():
            raise ValidationError("Contact name is required")
        return self.db.create_contact(client_id, name.strip(), company_name=company_name)

    def add_bill(
        self,
        client_id: int,
        total_amount: Decimal,
        contact_id: Optional[int] = None,
        bill_number: Optional[str] = None,
        bill_date: Optional[date] = None,
    ) -> int:
        """Record an outstanding bill."""
        self._require_client(client_id)
        self._check_document(client_id, total_amount, contact_id)
        return self.db.create_bill(
            client_id, total_amount, contact_id=contact_id, bill_number=bill_number, bill_date=bill_date
        )

    def add_invoice(
        self,
        client_id: int,
        total_amount: Decimal,
        contact_id: Optional[int] = None,
        invoice_number: Optional[str] = None,
        invoice_date: Optional[date] = None,
    ) -> int:
        """Record an outstanding invoice."""
        self._require_client(client_id)
        self._check_document(client_id, total_amount, contact_id)
        return self.db.create_invoice(
            client_id,
            total_amount,
            contact_id=contact_id,
            invoice_number=invoice_number,
            invoice_date=invoice_date,
        )

    def _check_document(self, client_id: int, total_amount: Decimal, contact_id: Optional[int]) -> None:
        if total_amount <= 0:
            raise ValidationError("Total amount must be positive")
        if contact_id is not None and contact_id not in {c.id for c in self.db.list_contacts(client_id)}:
            raise ValidationError(f"Contact {contact_id} not found for client {client_id}")

    def add_bank_transactions(self, client_id: int, transactions: Iterable[dict]) -> list[int]:
        """Store bank transactions read from a statement.

        Each dict has date, description, debit_amount, credit_amount and
        reference keys.
        """
        self._require_client(client_id)
        ids = []
        for txn in transactions:
            ids.append(
                self.db.create_bank_transaction(
                    client_id,
                    date=txn.get("date"),
                    description=txn.get("description"),
                    debit_amount=txn.get("debit_amount", Decimal("0")),
                    credit_amount=txn.get("credit_amount", Decimal("0")),
                    reference=txn.get("reference"),
                )
            )
        logger.info("Stored %s bank transactions", len(ids), extra={"client_id": client_id})
        return ids

    def match_transaction(
        self,
        transaction: BankTransaction,
        bills: list[Bill],
        invoices: list[Invoice],
        contacts: list[Contact],
    ) -> TransactionMatch:
        """Score the pool the transaction's direction allows."""
        pool = self.matcher.eligible_pool(transaction, bills, invoices)
        if transaction.is_income:
            kind = "invoice"
        elif transaction.is_expense:
            kind = "bill"
        else:
            kind = None
        result = self.matcher.match(transaction, pool, contacts) if pool else None
        return TransactionMatch(
            transaction=transaction,
            counterpart_kind=kind if result is not None else None,
            result=result,
        )

    def match_bank_transactions(self, client_id: int) -> list[TransactionMatch]:
        """Suggest an open bill or invoice for every unlinked bank transaction of a client."""
        self._require_client(client_id)
        bills = self.db.list_bills(client_id)
        invoices = self.db.list_invoices(client_id)
        contacts = self.db.list_contacts(client_id)
        linked = {d.bank_transaction_id for d in [*bills, *invoices] if d.bank_transaction_id is not None}
        bills = [b for b in bills if not b.is_paid]
        invoices = [i for i in invoices if not i.is_paid]

        matches = [
            self.match_transaction(txn, bills, invoices, contacts)
            for txn in self.db.list_bank_transactions(client_id)
            if txn.id not in linked
        ]
        logger.debug(
            "Matched %s of %s bank transactions",
            sum(1 for m in matches if m.result is not None),
            len(matches),
            extra={"client_id": client_id},
        )
        return matches

    def link_match(self, client_id: int, transaction_id: int, counterpart_id: int) -> str:
        """Settle a bill or invoice with a bank transaction and mark it paid.

        The transaction direction decides the document kind: money in
        settles an invoice, money out a bill.

        Returns:
            "bill" or "invoice"

        Raises:
            NotFoundError: If the transaction or document does not belong to the client
            ValidationError: If the transaction has no single direction
            ConflictError: If the transaction is already linked or the document already paid
        """
        self._require_client(client_id)
        txn = self.db.get_bank_transaction(transaction_id)
        if txn is None or txn.client_id != client_id:
            raise NotFoundError(f"Bank transaction {transaction_id} not found for client {client_id}")

        kind = candidate_kind(txn)
        if kind is None:
            raise ValidationError(
                f"Bank transaction {transaction_id} must be money in or money out to settle a document"
            )

        for doc in [*self.db.list_bills(client_id), *self.db.list_invoices(client_id)]:
            if doc.bank_transaction_id == transaction_id:
                doc_kind = "bill" if isinstance(doc, Bill) else "invoice"
                raise ConflictError(
                    f"Bank transaction {transaction_id} is already linked to {doc_kind} {doc.id}"
                )

        if kind is Bill:
            doc_kind, document = "bill", self.db.get_bill(counterpart_id)
        else:
            doc_kind, document = "invoice", self.db.get_invoice(counterpart_id)
        if document is None or document.client_id != client_id:
            raise NotFoundError(f"{doc_kind.capitalize()} {counterpart_id} not found for client {client_id}")
        if document.is_paid:
            raise ConflictError(f"{doc_kind.capitalize()} {counterpart_id} is already paid")

        if kind is Bill:
            self.db.mark_bill_paid(counterpart_id, transaction_id)
        else:
            self.db.mark_invoice_paid(counterpart_id, transaction_id)
        logger.info(
            "Linked bank transaction %s to %s %s",
            transaction_id,
            doc_kind,
            counterpart_id,
            extra={"client_id": client_id},
        )
        return doc_kind
