"""Staged general-ledger import.

A session moves through

    upload -> analyzing -> analyzed | mapping -> importing
           -> completed | failed | cancelled | rejected

``analyze`` stores the extracted rows and resolves every distinct account
reference. References that auto-resolve get their mapping right away; the
rest wait in ``mapping`` until ``update_mappings`` (or ``start_import``)
supplies a decision for each. ``start_import`` then posts one balanced
journal entry per row, offset against the client's import clearing account.

Rows are independent: a row that cannot be posted is skipped and the batch
continues. A row that repeats one posted by an earlier session (same date,
reference, account and amounts) is skipped as a duplicate unless the caller
allows duplicates. Entries already committed stay committed whatever happens
to the session afterwards.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ledgerlink.config import Settings
from ledgerlink.database.base import Database
from ledgerlink.domain.account import AccountService
from ledgerlink.domain.account_resolver import (
    AccountAnalysis,
    AccountResolver,
    MatchType,
    ValidationSummary,
    infer_account_type,
    normalize_ref,
)
from ledgerlink.domain.entities import (
    ACTIVE_STATUSES,
    Account,
    AccountMapping,
    ExtractedRow,
    ImportSession,
    MappingAction,
    SessionStage,
    SessionStatus,
)
from ledgerlink.domain.errors import (
    ActiveSessionError,
    DomainError,
    NotFoundError,
    SessionFailure,
    SessionLockedError,
    StaleSessionError,
    ValidationError,
    active_session_exists,
    client_not_found,
    session_not_found,
    stale_session,
    unmapped_accounts,
)
from ledgerlink.domain.journal import JournalService
from ledgerlink.domain.journal_validator import JournalEntryCandidate, JournalLineCandidate
from ledgerlink.domain.progress import Clock, ProgressTracker

logger = logging.getLogger(__name__)

MappingsArg = Union[Mapping[str, AccountMapping], Iterable[AccountMapping]]


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of analysing one file."""

    session_id: int
    session: ImportSession
    account_analysis: list[AccountAnalysis]
    summary: ValidationSummary
    extracted_data: list[ExtractedRow]


@dataclass
class ImportResult:
    """Outcome of an import run."""

    session_id: int
    status: SessionStatus
    successful: int = 0
    skipped: int = 0
    message: str = ""
    errors: list[str] = field(default_factory=list)


class RowSkipped(Exception):
    """A single row cannot be posted; the import moves on."""


def _distinct_refs(rows: Iterable[ExtractedRow]) -> dict[str, str]:
    """Normalised key -> reference as first written, in first-seen order."""
    refs: dict[str, str] = {}
    for row in rows:
        refs.setdefault(normalize_ref(row.account_ref), row.account_ref)
    return refs


def _row_amounts(row: ExtractedRow) -> tuple[Decimal, Decimal]:
    """Debit and credit of a row, with negative amounts moved to the other side."""
    debit = Decimal("0")
    credit = Decimal("0")
    if row.debit < 0:
        credit += -row.debit
    else:
        debit += row.debit
    if row.credit < 0:
        debit += -row.credit
    else:
        credit += row.credit
    return debit, credit


def build_row_candidate(
    row: ExtractedRow, row_number: int, account_id: int, clearing_account_id: int
) -> JournalEntryCandidate:
    """Two-line entry for one ledger row: the row itself plus its offset."""
    debit, credit = _row_amounts(row)
    description = (row.description or "").strip() or row.reference or f"GL import row {row_number}"
    return JournalEntryCandidate(
        description=description,
        entry_date=row.date,
        reference_number=row.reference,
        lines=(
            JournalLineCandidate(
                account_id=account_id,
                debit_amount=debit,
                credit_amount=credit,
                description=row.description,
            ),
            JournalLineCandidate(
                account_id=clearing_account_id,
                debit_amount=credit,
                credit_amount=debit,
                description=row.description,
                memo=f"Offset for {row.account_ref}",
            ),
        ),
    )


class ImportSessionService:
    """Own import sessions and post the journal entries they produce."""

    def __init__(
        self,
        db: Database,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize import session service.

        Args:
            db: Database instance
            settings: Resolver and import settings (defaults when omitted)
            clock: Current-time source for progress estimates
        """
        self.db = db
        self.settings = settings or Settings()
        self.resolver = AccountResolver(self.settings.resolver)
        self.account_service = AccountService(db)
        self.journal_service = JournalService(db)
        self.progress = ProgressTracker(db, clock=clock)

    # Session lookup

    def get_session(self, client_id: int, session_id: int) -> ImportSession:
        """Get one of the client's sessions.

        Raises:
            NotFoundError: If the session does not exist or belongs to another client
        """
        session = self.db.get_import_session(session_id)
        if session is None or session.client_id != client_id:
            raise NotFoundError(session_not_found(session_id, client_id))
        return session

    def get_active_session(self, client_id: int) -> Optional[ImportSession]:
        """The client's pending, matched or processing session, if any."""
        sessions = self.db.list_import_sessions(client_id, statuses=list(ACTIVE_STATUSES))
        return sessions[0] if sessions else None

    def list_sessions(self, client_id: int) -> list[ImportSession]:
        """All sessions of a client, newest first."""
        return self.db.list_import_sessions(client_id)

    def _open_session(self, client_id: int, session_id: int) -> ImportSession:
        session = self.get_session(client_id, session_id)
        if session.is_terminal:
            raise StaleSessionError(stale_session(session_id, session.status.value))
        return session

    def _transition(
        self,
        session: ImportSession,
        status: SessionStatus,
        stage: SessionStage,
        error_message: Optional[str] = None,
    ) -> ImportSession:
        self.db.update_import_session(session.id, status, stage, error_message=error_message)
        logger.info(
            "Import session %s: %s -> %s (%s)",
            session.id,
            session.status.value,
            status.value,
            stage.value,
            extra={"session_id": session.id, "client_id": session.client_id},
        )
        return self.db.get_import_session(session.id)

    def _mark_failed(self, session: ImportSession, error: Exception) -> None:
        self.db.rollback()
        try:
            self._transition(session, SessionStatus.FAILED, SessionStage.FAILED, error_message=str(error))
            self.progress.deactivate(session.id)
        except SQLAlchemyError:
            logger.exception(
                "Could not record failure of import session %s",
                session.id,
                extra={"session_id": session.id, "client_id": session.client_id},
            )

    # Stage 1: analysis

    def analyze(
        self,
        client_id: int,
        rows: Iterable[ExtractedRow],
        file_name: Optional[str] = None,
    ) -> AnalysisResult:
        """Start a session for a file's rows and resolve their accounts.

        A pending or matched session of the same client is superseded (marked
        rejected); a processing one blocks the new analysis.

        Args:
            client_id: Client the ledger belongs to
            rows: Extracted rows in file order
            file_name: Source file name, for display

        Returns:
            AnalysisResult

        Raises:
            NotFoundError: If the client does not exist
            ActiveSessionError: If the client has an import running
            ValidationError: If there are no rows
            SessionFailure: If the store fails mid-analysis
        """
        if self.db.get_client(client_id) is None:
            raise NotFoundError(client_not_found(client_id))

        rows = list(rows)
        if not rows:
            raise ValidationError("No rows to import")

        for existing in self.db.list_import_sessions(client_id, statuses=list(ACTIVE_STATUSES)):
            if existing.status == SessionStatus.PROCESSING:
                raise ActiveSessionError(active_session_exists(existing.id, client_id))
            logger.info(
                "Superseding import session %s",
                existing.id,
                extra={"session_id": existing.id, "client_id": client_id},
            )
            self._transition(existing, SessionStatus.REJECTED, SessionStage.REJECTED)

        self.progress.clear(client_id)
        session_id = self.db.create_import_session(
            client_id, SessionStatus.PENDING, SessionStage.ANALYZING, file_name=file_name
        )
        session = self.db.get_import_session(session_id)

        try:
            self.db.add_extracted_rows(session_id, rows)
            accounts = self.db.list_accounts(client_id, include_inactive=True)
            analyses = self.resolver.analyze_rows(rows, accounts)
            for analysis in analyses:
                if self.resolver.is_auto_accepted(analysis):
                    self.db.save_account_mapping(session_id, self.resolver.default_mapping(analysis))
            summary = self.resolver.summarize(analyses, rows)

            if summary.ready_to_import:
                session = self._transition(session, SessionStatus.MATCHED, SessionStage.ANALYZED)
            else:
                session = self._transition(session, SessionStatus.PENDING, SessionStage.MAPPING)
        except SQLAlchemyError as e:
            logger.exception(
                "Analysis of import session %s failed",
                session_id,
                extra={"session_id": session_id, "client_id": client_id},
            )
            self._mark_failed(session, e)
            raise SessionFailure(f"Import session {session_id} failed: {e}") from e

        return AnalysisResult(
            session_id=session_id,
            session=session,
            account_analysis=analyses,
            summary=summary,
            extracted_data=rows,
        )

    def validate_accounts(
        self, client_id: int, session_id: int
    ) -> tuple[ValidationSummary, list[AccountAnalysis]]:
        """Resolve the session's references again against the current chart.

        Read-only: calling it twice without changes in between gives the same
        answer.
        """
        self.get_session(client_id, session_id)
        rows = self.db.get_extracted_rows(session_id)
        accounts = self.db.list_accounts(client_id, include_inactive=True)
        analyses = self.resolver.analyze_rows(rows, accounts)
        return self.resolver.summarize(analyses, rows), analyses

    def default_mappings(self, client_id: int, session_id: int) -> list[AccountMapping]:
        """Suggested mapping for every reference of a session."""
        _, analyses = self.validate_accounts(client_id, session_id)
        return [self.resolver.default_mapping(a) for a in analyses]

    # Stage 2: mapping

    def get_mappings(self, client_id: int, session_id: int) -> list[AccountMapping]:
        """Mapping decisions stored so far."""
        self.get_session(client_id, session_id)
        return self.db.get_account_mappings(session_id)

    def update_mappings(
        self, client_id: int, session_id: int, mappings: MappingsArg
    ) -> list[AccountMapping]:
        """Record mapping decisions for some or all references.

        Args:
            client_id: Owning client
            session_id: Session being mapped
            mappings: AccountMapping objects, or a dict keyed by account reference

        Returns:
            Every mapping of the session after the update

        Raises:
            StaleSessionError: If the session is terminal
            SessionLockedError: If the import already started
            ValidationError: If a reference is unknown or a target unusable
        """
        session = self._open_session(client_id, session_id)
        if session.status == SessionStatus.PROCESSING:
            raise SessionLockedError(
                f"Import session {session_id} is already importing; mappings are frozen"
            )

        refs = _distinct_refs(self.db.get_extracted_rows(session_id))
        for mapping in self._coerce_mappings(mappings):
            key = normalize_ref(mapping.account_ref)
            if key not in refs:
                raise ValidationError(
                    f"Account '{mapping.account_ref}' does not appear in import session {session_id}"
                )
            self._check_target(client_id, mapping)
            self.db.save_account_mapping(
                session_id,
                AccountMapping(
                    account_ref=refs[key],
                    action=MappingAction(mapping.action),
                    target_account_id=mapping.target_account_id if mapping.action == MappingAction.MAP else None,
                    notes=mapping.notes,
                ),
            )

        stored = self.db.get_account_mappings(session_id)
        mapped = {normalize_ref(m.account_ref) for m in stored}
        if mapped >= set(refs):
            if session.status != SessionStatus.MATCHED:
                self._transition(session, SessionStatus.MATCHED, SessionStage.ANALYZED)
        elif session.stage != SessionStage.MAPPING:
            self._transition(session, SessionStatus.PENDING, SessionStage.MAPPING)
        return stored

    @staticmethod
    def _coerce_mappings(mappings: MappingsArg) -> list[AccountMapping]:
        if isinstance(mappings, Mapping):
            result = []
            for ref, mapping in mappings.items():
                if mapping.account_ref != ref:
                    mapping = AccountMapping(
                        account_ref=ref,
                        action=mapping.action,
                        target_account_id=mapping.target_account_id,
                        notes=mapping.notes,
                    )
                result.append(mapping)
            return result
        return list(mappings)

    def _check_target(self, client_id: int, mapping: AccountMapping) -> None:
        try:
            action = MappingAction(mapping.action)
        except ValueError:
            raise ValidationError(f"Invalid mapping action '{mapping.action}'")
        if action != MappingAction.MAP:
            return
        if mapping.target_account_id is None:
            raise ValidationError(f"Mapping for '{mapping.account_ref}' needs a target account")
        account = self.db.get_account(mapping.target_account_id)
        if account is None or account.client_id != client_id:
            raise ValidationError(
                f"Target account {mapping.target_account_id} not found for client {client_id}"
            )
        if not account.is_active:
            raise ValidationError(f"Target account {account.label} is inactive")

    # Stage 3: import

    def start_import(
        self,
        client_id: int,
        session_id: int,
        mappings: Optional[MappingsArg] = None,
        create_missing_accounts: bool = True,
        accept_defaults: bool = False,
        skip_duplicates: bool = True,
    ) -> ImportResult:
        """Post every row of the session as a journal entry.

        Args:
            client_id: Owning client
            session_id: Session to import
            mappings: Extra mapping decisions merged before the run
            create_missing_accounts: Allow ``create`` mappings to add accounts
            accept_defaults: Fill references still unmapped with the suggested mapping
            skip_duplicates: Skip rows already posted by another import session

        Returns:
            ImportResult with counts and per-row errors

        Raises:
            StaleSessionError: If the session is terminal
            SessionLockedError: If the import already started
            ValidationError: If a reference has no mapping decision
            SessionFailure: If the store fails mid-import
        """
        if mappings:
            self.update_mappings(client_id, session_id, mappings)

        session = self._open_session(client_id, session_id)
        if session.status == SessionStatus.PROCESSING:
            raise SessionLockedError(f"Import session {session_id} is already importing")

        rows = self.db.get_extracted_rows(session_id)
        refs = _distinct_refs(rows)

        if accept_defaults:
            mapped = {normalize_ref(m.account_ref) for m in self.db.get_account_mappings(session_id)}
            defaults = [
                m for m in self.default_mappings(client_id, session_id)
                if normalize_ref(m.account_ref) not in mapped
            ]
            if defaults:
                self.update_mappings(client_id, session_id, defaults)
                session = self.get_session(client_id, session_id)

        stored = {normalize_ref(m.account_ref): m for m in self.db.get_account_mappings(session_id)}
        missing = [ref for key, ref in refs.items() if key not in stored]
        if missing:
            raise ValidationError(unmapped_accounts(missing))

        clearing = self.account_service.get_or_create_clearing_account(
            client_id, self.settings.importing
        )

        session = self._transition(session, SessionStatus.PROCESSING, SessionStage.IMPORTING)
        try:
            self.progress.start(session, len(rows))
            return self._run(session, rows, stored, clearing, create_missing_accounts, skip_duplicates)
        except SQLAlchemyError as e:
            logger.exception(
                "Import session %s failed",
                session.id,
                extra={"session_id": session.id, "client_id": client_id},
            )
            self._mark_failed(session, e)
            raise SessionFailure(f"Import session {session.id} failed: {e}") from e

    def _run(
        self,
        session: ImportSession,
        rows: list[ExtractedRow],
        mappings: dict[str, AccountMapping],
        clearing: Account,
        create_missing_accounts: bool,
        skip_duplicates: bool = True,
    ) -> ImportResult:
        result = ImportResult(session_id=session.id, status=SessionStatus.PROCESSING)
        resolved: dict[str, Union[int, str]] = {}
        log_extra = {"session_id": session.id, "client_id": session.client_id}

        for row_number, row in enumerate(rows, start=1):
            current = self.db.get_import_session(session.id)
            if current.status != SessionStatus.PROCESSING:
                logger.info(
                    "Import session %s stopped at row %s: %s",
                    session.id, row_number, current.status.value, extra=log_extra,
                )
                result.status = current.status
                break

            label = f"Row {row_number}: {row.description or row.account_ref}"
            try:
                account_id = self._row_account(session, row, mappings, resolved, create_missing_accounts)
                candidate = build_row_candidate(row, row_number, account_id, clearing.id)
                if skip_duplicates:
                    self._check_duplicate(session, candidate)
                self.journal_service.create_entry(session.client_id, candidate, session_id=session.id)
            except (RowSkipped, DomainError, IntegrityError) as e:
                if isinstance(e, IntegrityError):
                    self.db.rollback()
                result.skipped += 1
                result.errors.append(f"Row {row_number}: {e}")
                logger.warning("Skipped row %s: %s", row_number, e, extra=log_extra)
                self.progress.advance(session.id, skipped=1, current_entry=label)
                continue

            result.successful += 1
            self.progress.advance(session.id, imported=1, current_entry=label)
        else:
            current = self.db.get_import_session(session.id)
            if current.status == SessionStatus.PROCESSING:
                self._transition(current, SessionStatus.COMPLETED, SessionStage.COMPLETED)
                self.progress.finish(session.id)
            result.status = self.db.get_import_session(session.id).status

        processed = result.successful + result.skipped
        if result.status == SessionStatus.COMPLETED:
            result.message = (
                f"Imported {result.successful} journal entr{'ies' if result.successful != 1 else 'y'}"
                f", skipped {result.skipped}"
            )
        else:
            result.message = (
                f"Import {result.status.value} after {processed} of {len(rows)} rows "
                f"({result.successful} imported, {result.skipped} skipped)"
            )
        return result

    def _row_account(
        self,
        session: ImportSession,
        row: ExtractedRow,
        mappings: dict[str, AccountMapping],
        resolved: dict[str, Union[int, str]],
        create_missing_accounts: bool,
    ) -> int:
        """Account a row posts to; raises RowSkipped with the reason otherwise.

        Outcomes are cached per reference so a created account is created once
        and a failed creation is not retried for every row.
        """
        key = normalize_ref(row.account_ref)
        if key in resolved:
            outcome = resolved[key]
            if isinstance(outcome, str):
                raise RowSkipped(outcome)
            return outcome

        mapping = mappings[key]
        try:
            if mapping.action == MappingAction.SKIP:
                raise RowSkipped(f"Account '{row.account_ref}' is mapped to skip")
            if mapping.action == MappingAction.MAP:
                account_id = self._mapped_account(session.client_id, mapping)
            else:
                if not create_missing_accounts:
                    raise RowSkipped(f"Account '{row.account_ref}' does not exist and creation is disabled")
                account_id = self._create_account(session, row)
        except RowSkipped as e:
            resolved[key] = str(e)
            raise
        except DomainError as e:
            resolved[key] = str(e)
            raise RowSkipped(str(e)) from e

        if mapping.action == MappingAction.CREATE:
            resolved[key] = account_id
        return account_id

    def _check_duplicate(self, session: ImportSession, candidate: JournalEntryCandidate) -> None:
        """Raise RowSkipped if another import session already posted this row."""
        if candidate.entry_date is None:
            return
        line = candidate.lines[0]
        entries = self.db.find_imported_entries(
            session.client_id,
            candidate.entry_date,
            candidate.reference_number,
            exclude_session_id=session.id,
        )
        for entry in entries:
            for existing in entry.lines:
                if (
                    existing.account_id == line.account_id
                    and existing.debit_amount == line.debit_amount
                    and existing.credit_amount == line.credit_amount
                ):
                    raise RowSkipped(
                        f"Duplicate of journal entry {entry.id} from import session {entry.session_id}"
                    )

    def _mapped_account(self, client_id: int, mapping: AccountMapping) -> int:
        account = self.db.get_account(mapping.target_account_id)
        if account is None or account.client_id != client_id:
            raise RowSkipped(f"Mapped account {mapping.target_account_id} no longer exists")
        if not account.is_active:
            raise RowSkipped(f"Mapped account {account.label} is inactive")
        return account.id

    def _create_account(self, session: ImportSession, row: ExtractedRow) -> int:
        accounts = self.db.list_accounts(session.client_id, include_inactive=True)
        existing = self.resolver.resolve(row.account_ref, accounts)
        if existing.match_type == MatchType.EXACT:
            return existing.matched_account.id
        if not existing.can_create:
            raise RowSkipped(existing.error)

        ref = " ".join(row.account_ref.split())
        if row.account_name and row.account_name.strip():
            number, name = ref, row.account_name.strip()
        else:
            number, name = None, ref
        account_id = self.account_service.create_account(
            client_id=session.client_id,
            name=name,
            account_type=infer_account_type(number or ref),
            number=number,
        )
        logger.info(
            "Created account '%s' during import",
            ref,
            extra={"session_id": session.id, "client_id": session.client_id, "account_id": account_id},
        )
        return account_id

    # Ending a session early

    def cancel(self, client_id: int, session_id: int) -> ImportSession:
        """Stop a session; a running import stops before its next row.

        Raises:
            StaleSessionError: If the session is already terminal
        """
        session = self._open_session(client_id, session_id)
        session = self._transition(session, SessionStatus.CANCELLED, SessionStage.CANCELLED)
        self.progress.deactivate(session_id)
        return session

    def reject(self, client_id: int, session_id: int) -> ImportSession:
        """Discard a staged session before it is imported.

        Raises:
            StaleSessionError: If the session is already terminal
            SessionLockedError: If the import is running (cancel it instead)
        """
        session = self._open_session(client_id, session_id)
        if session.status == SessionStatus.PROCESSING:
            raise SessionLockedError(
                f"Import session {session_id} is importing; cancel it instead"
            )
        session = self._transition(session, SessionStatus.REJECTED, SessionStage.REJECTED)
        self.progress.deactivate(session_id)
        return session

    def fail_stalled(self, client_id: int, stalled_for: timedelta) -> list[ImportSession]:
        """Fail running sessions whose progress has not moved for ``stalled_for``.

        Returns:
            The sessions that were marked failed
        """
        failed = []
        for session in self.db.list_import_sessions(client_id, statuses=[SessionStatus.PROCESSING]):
            record = self.progress.get(session.id)
            if record is None:
                idle = self.progress.clock() - session.updated_at >= stalled_for
            else:
                idle = self.progress.is_stalled(session.id, stalled_for)
            if not idle:
                continue
            logger.warning(
                "Import session %s stalled", session.id,
                extra={"session_id": session.id, "client_id": client_id},
            )
            failed.append(
                self._transition(
                    session,
                    SessionStatus.FAILED,
                    SessionStage.FAILED,
                    error_message=f"No progress for {stalled_for}",
                )
            )
            self.progress.deactivate(session.id)
        return failed
