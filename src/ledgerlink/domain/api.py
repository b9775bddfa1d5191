"""Transport-agnostic request/response operations.

Every method takes plain values (domain objects or camelCase dicts) and
returns plain dicts with camelCase keys, ready to serialise as JSON. Money is
rendered as a decimal string, dates and timestamps in ISO 8601.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Union

from ledgerlink.config import Settings
from ledgerlink.database.base import Database
from ledgerlink.domain.account_resolver import AccountAnalysis, ValidationSummary
from ledgerlink.domain.entities import (
    Account,
    AccountMapping,
    BankTransaction,
    Bill,
    Contact,
    DocumentStatus,
    ExtractedRow,
    Invoice,
    MappingAction,
)
from ledgerlink.domain.entity_matcher import EntityMatcher, MatchResult
from ledgerlink.domain.errors import ValidationError
from ledgerlink.domain.import_session import ImportSessionService
from ledgerlink.domain.journal_validator import (
    JournalEntryCandidate,
    JournalLineCandidate,
    validate_journal_entry,
)
from ledgerlink.domain.progress import ProgressSnapshot
from ledgerlink.utils.amount_parser import parse_amount
from ledgerlink.utils.date_parser import try_parse_date


def _get(data: Mapping[str, Any], camel: str, snake: str, default=None):
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def _money(value) -> Decimal:
    return parse_amount(value, default=Decimal("0"))


def _iso(value: Optional[Union[date, datetime]]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# Inbound conversion

def row_from_dict(data: Union[ExtractedRow, Mapping[str, Any]]) -> ExtractedRow:
    if isinstance(data, ExtractedRow):
        return data
    return ExtractedRow(
        account_ref=str(_get(data, "accountRef", "account_ref", "") or ""),
        date=try_parse_date(data.get("date")),
        description=data.get("description"),
        debit=_money(data.get("debit")),
        credit=_money(data.get("credit")),
        reference=data.get("reference"),
        account_name=_get(data, "accountName", "account_name"),
    )


def mapping_from_dict(account_ref: str, data: Union[AccountMapping, Mapping[str, Any]]) -> AccountMapping:
    if isinstance(data, AccountMapping):
        return data
    try:
        action = MappingAction(data.get("action"))
    except ValueError:
        raise ValidationError(f"Invalid mapping action '{data.get('action')}' for '{account_ref}'")
    target = _get(data, "targetAccountId", "target_account_id")
    return AccountMapping(
        account_ref=account_ref,
        action=action,
        target_account_id=int(target) if target is not None else None,
        notes=data.get("notes") or "",
    )


def transaction_from_dict(data: Union[BankTransaction, Mapping[str, Any]]) -> BankTransaction:
    if isinstance(data, BankTransaction):
        return data
    return BankTransaction(
        id=int(data.get("id", 0)),
        client_id=int(_get(data, "clientId", "client_id", 0)),
        date=try_parse_date(data.get("date")),
        description=data.get("description"),
        debit_amount=_money(_get(data, "debitAmount", "debit_amount")),
        credit_amount=_money(_get(data, "creditAmount", "credit_amount")),
        reference=data.get("reference"),
    )


def candidate_from_dict(data: Union[Bill, Invoice, Mapping[str, Any]]) -> Union[Bill, Invoice]:
    """Bills carry billDate, invoices invoiceDate; a bare ``date`` reads as a bill."""
    if isinstance(data, (Bill, Invoice)):
        return data
    common = dict(
        id=int(data["id"]),
        client_id=int(_get(data, "clientId", "client_id", 0)),
        contact_id=_get(data, "contactId", "contact_id"),
        total_amount=_money(_get(data, "totalAmount", "total_amount")),
        status=DocumentStatus(data.get("status") or "open"),
    )
    if _get(data, "invoiceDate", "invoice_date") is not None or _get(data, "invoiceNumber", "invoice_number"):
        return Invoice(
            invoice_number=_get(data, "invoiceNumber", "invoice_number"),
            invoice_date=try_parse_date(_get(data, "invoiceDate", "invoice_date")),
            **common,
        )
    return Bill(
        bill_number=_get(data, "billNumber", "bill_number"),
        bill_date=try_parse_date(_get(data, "billDate", "bill_date", data.get("date"))),
        **common,
    )


def contact_from_dict(data: Union[Contact, Mapping[str, Any]]) -> Contact:
    if isinstance(data, Contact):
        return data
    return Contact(
        id=int(data["id"]),
        client_id=int(_get(data, "clientId", "client_id", 0)),
        name=data.get("name") or _get(data, "displayName", "display_name", "") or "",
        company_name=_get(data, "companyName", "company_name"),
    )


def entry_candidate_from_dict(
    data: Union[JournalEntryCandidate, Mapping[str, Any]]
) -> JournalEntryCandidate:
    if isinstance(data, JournalEntryCandidate):
        return data
    lines = []
    for line in data.get("lines") or []:
        account_id = _get(line, "accountId", "account_id")
        lines.append(
            JournalLineCandidate(
                account_id=int(account_id) if account_id not in (None, "") else None,
                debit_amount=_money(_get(line, "debitAmount", "debit_amount")),
                credit_amount=_money(_get(line, "creditAmount", "credit_amount")),
                description=line.get("description"),
                memo=line.get("memo"),
            )
        )
    return JournalEntryCandidate(
        description=data.get("description") or "",
        entry_date=try_parse_date(_get(data, "entryDate", "entry_date")),
        reference_number=_get(data, "referenceNumber", "reference_number"),
        lines=tuple(lines),
    )


# Outbound conversion

def account_to_dict(account: Optional[Account]) -> Optional[dict]:
    if account is None:
        return None
    return {
        "id": account.id,
        "number": account.number,
        "name": account.name,
        "accountType": account.account_type.value,
        "isActive": account.is_active,
    }


def analysis_to_dict(analysis: AccountAnalysis) -> dict:
    return {
        "accountRef": analysis.account_ref,
        "accountName": analysis.account_name,
        "matchType": analysis.match_type.value,
        "matchedAccount": account_to_dict(analysis.matched_account),
        "confidence": analysis.confidence,
        "similarAccounts": [
            {"account": account_to_dict(s.account), "similarity": s.similarity}
            for s in analysis.similar_accounts
        ],
        "canCreate": analysis.can_create,
        "transactionCount": analysis.transaction_count,
        "error": analysis.error,
    }


def summary_to_dict(summary: ValidationSummary) -> dict:
    return {
        "totalTransactions": summary.total_transactions,
        "totalUniqueAccounts": summary.total_unique_accounts,
        "exactMatches": summary.exact_matches,
        "fuzzyMatches": summary.fuzzy_matches,
        "newAccountsNeeded": summary.new_accounts_needed,
        "unresolvableAccounts": summary.unresolvable_accounts,
        "matchRate": summary.match_rate,
        "readyToImport": summary.ready_to_import,
        "totalDebits": str(summary.total_debits),
        "totalCredits": str(summary.total_credits),
        "isBalanced": summary.is_balanced,
    }


def row_to_dict(row: ExtractedRow) -> dict:
    return {
        "accountRef": row.account_ref,
        "accountName": row.account_name,
        "date": _iso(row.date),
        "description": row.description,
        "debit": str(row.debit),
        "credit": str(row.credit),
        "reference": row.reference,
    }


def match_result_to_dict(result: Optional[MatchResult]) -> Optional[dict]:
    if result is None:
        return None
    return {
        "counterpartId": result.counterpart_id,
        "contactId": result.contact_id,
        "score": result.score,
        "allMatches": [
            {
                "counterpartId": m.counterpart_id,
                "contactId": m.contact_id,
                "score": m.score,
                "amountPoints": m.amount_points,
                "datePoints": m.date_points,
                "namePoints": m.name_points,
            }
            for m in result.all_matches
        ],
    }


def progress_to_dict(snapshot: ProgressSnapshot) -> dict:
    return {
        "status": snapshot.status,
        "isActive": snapshot.is_active,
        "total": snapshot.total,
        "progress": snapshot.progress,
        "percentage": snapshot.percentage,
        "currentEntry": snapshot.current_entry,
        "startTime": _iso(snapshot.start_time),
        "estimatedTimeRemaining": snapshot.estimated_time_remaining,
        "sessionId": snapshot.session_id,
        "imported": snapshot.imported,
        "skipped": snapshot.skipped,
    }


class LedgerLinkAPI:
    """Request/response facade over the import and matching services."""

    def __init__(self, db: Database, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or Settings()
        self.sessions = ImportSessionService(db, settings=self.settings)
        self.matcher = EntityMatcher(self.settings.matching)

    def analyze_import(
        self, client_id: int, file_rows: Iterable[Union[ExtractedRow, Mapping[str, Any]]], file_name: Optional[str] = None
    ) -> dict:
        result = self.sessions.analyze(client_id, [row_from_dict(r) for r in file_rows], file_name=file_name)
        return {
            "sessionId": result.session_id,
            "accountAnalysis": [analysis_to_dict(a) for a in result.account_analysis],
            "summary": summary_to_dict(result.summary),
            "extractedData": [row_to_dict(r) for r in result.extracted_data],
        }

    def validate_accounts(self, client_id: int, session_id: int) -> dict:
        summary, analyses = self.sessions.validate_accounts(client_id, session_id)
        return {
            "summary": summary_to_dict(summary),
            "accountAnalysis": [analysis_to_dict(a) for a in analyses],
        }

    def update_mappings(self, client_id: int, session_id: int, mappings: Mapping[str, Any]) -> dict:
        stored = self.sessions.update_mappings(
            client_id,
            session_id,
            [mapping_from_dict(ref, data) for ref, data in mappings.items()],
        )
        return {"success": True, "sessionId": session_id, "mappedAccounts": len(stored)}

    def start_import(
        self,
        client_id: int,
        session_id: int,
        mappings: Optional[Mapping[str, Any]] = None,
        create_missing_accounts: bool = True,
        accept_defaults: bool = False,
        skip_duplicates: bool = True,
    ) -> dict:
        parsed = [mapping_from_dict(ref, data) for ref, data in (mappings or {}).items()]
        result = self.sessions.start_import(
            client_id,
            session_id,
            mappings=parsed or None,
            create_missing_accounts=create_missing_accounts,
            accept_defaults=accept_defaults,
            skip_duplicates=skip_duplicates,
        )
        return {
            "sessionId": result.session_id,
            "status": result.status.value,
            "successful": result.successful,
            "skipped": result.skipped,
            "message": result.message,
            "errors": list(result.errors),
        }

    def get_import_progress(self, client_id: int) -> dict:
        return progress_to_dict(self.sessions.progress.snapshot(client_id))

    def match_entities(
        self,
        transaction: Union[BankTransaction, Mapping[str, Any]],
        candidate_pool: Iterable[Union[Bill, Invoice, Mapping[str, Any]]],
        contacts: Iterable[Union[Contact, Mapping[str, Any]]],
    ) -> Optional[dict]:
        result = self.matcher.match(
            transaction_from_dict(transaction),
            [candidate_from_dict(c) for c in candidate_pool],
            [contact_from_dict(c) for c in contacts],
        )
        return match_result_to_dict(result)

    def validate_journal_entry(self, candidate: Union[JournalEntryCandidate, Mapping[str, Any]]) -> list[dict]:
        errors = validate_journal_entry(entry_candidate_from_dict(candidate))
        return [{"code": e.code, "message": e.message} for e in errors]
