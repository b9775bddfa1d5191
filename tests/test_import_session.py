"""Tests for the staged import session."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from ledgerlink.domain.entities import (
    AccountMapping,
    AccountType,
    MappingAction,
    SessionStage,
    SessionStatus,
)
from ledgerlink.domain.errors import (
    ActiveSessionError,
    ConflictError,
    NotFoundError,
    SessionFailure,
    SessionLockedError,
    StaleSessionError,
    ValidationError,
)

from conftest import make_row


def _balanced_pairs(count):
    """``count`` rows alternating cash debits and sales credits."""
    rows = []
    for i in range(count):
        ref = "1000" if i % 2 == 0 else "4000"
        side = {"debit": "10.00"} if i % 2 == 0 else {"credit": "10.00"}
        rows.append(make_row(ref, day=i + 1, description=f"Row {i + 1}", **side))
    return rows


def _assert_double_entry(entries):
    for entry in entries:
        assert abs(entry.total_debits - entry.total_credits) < Decimal("0.01")
        for line in entry.lines:
            assert not (line.debit_amount > 0 and line.credit_amount > 0)


# Analysis

def test_analyze_all_matched(session_service, sample_client, sample_accounts, matched_rows):
    result = session_service.analyze(sample_client.id, matched_rows, file_name="march.csv")

    assert result.session.status == SessionStatus.MATCHED
    assert result.session.stage == SessionStage.ANALYZED
    assert result.summary.ready_to_import is True
    assert result.summary.exact_matches == 3
    assert result.extracted_data == matched_rows
    mappings = session_service.get_mappings(sample_client.id, result.session_id)
    assert {m.account_ref for m in mappings} == {"1000", "4000", "6100"}
    assert all(m.action == MappingAction.MAP for m in mappings)
    assert {m.notes for m in mappings} == {"Exact match auto-selected"}


def test_analyze_with_unresolved_refs_waits_for_mapping(session_service, sample_client, sample_accounts):
    rows = [make_row("1000", debit="5"), make_row("Travel", credit="5")]

    result = session_service.analyze(sample_client.id, rows)

    assert result.session.status == SessionStatus.PENDING
    assert result.session.stage == SessionStage.MAPPING
    assert result.summary.new_accounts_needed == 1
    assert [m.account_ref for m in session_service.get_mappings(sample_client.id, result.session_id)] == ["1000"]


def test_analyze_requires_rows(session_service, sample_client):
    with pytest.raises(ValidationError):
        session_service.analyze(sample_client.id, [])


def test_analyze_unknown_client(session_service):
    with pytest.raises(NotFoundError):
        session_service.analyze(999, [make_row("1000", debit="1")])


def test_new_analysis_supersedes_staged_session(session_service, sample_client, sample_accounts, matched_rows):
    first = session_service.analyze(sample_client.id, matched_rows)
    second = session_service.analyze(sample_client.id, matched_rows)

    assert session_service.get_session(sample_client.id, first.session_id).status == SessionStatus.REJECTED
    active = session_service.get_active_session(sample_client.id)
    assert active.id == second.session_id


def test_running_import_blocks_new_analysis(session_service, temp_db, sample_client, sample_accounts, matched_rows):
    result = session_service.analyze(sample_client.id, matched_rows)
    temp_db.update_import_session(result.session_id, SessionStatus.PROCESSING, SessionStage.IMPORTING)

    with pytest.raises(ActiveSessionError):
        session_service.analyze(sample_client.id, matched_rows)

    processing = temp_db.list_import_sessions(sample_client.id, statuses=[SessionStatus.PROCESSING])
    assert [s.id for s in processing] == [result.session_id]
    assert len(session_service.list_sessions(sample_client.id)) == 1


def test_sessions_are_scoped_to_client(session_service, client_service, sample_client, sample_accounts, matched_rows):
    other = client_service.create_client("Other Client")
    result = session_service.analyze(sample_client.id, matched_rows)

    with pytest.raises(NotFoundError):
        session_service.get_session(other, result.session_id)


def test_validate_accounts_is_idempotent(session_service, sample_client, sample_accounts):
    rows = [make_row("1000", debit="5"), make_row("Office Sup", credit="5"), make_row("???", credit="0")]
    result = session_service.analyze(sample_client.id, rows)

    first = session_service.validate_accounts(sample_client.id, result.session_id)
    second = session_service.validate_accounts(sample_client.id, result.session_id)

    assert first == second
    assert first[1] == result.account_analysis


def test_validate_accounts_sees_new_accounts(session_service, account_service, sample_client, sample_accounts):
    rows = [make_row("1000", debit="5"), make_row("7100", credit="5")]
    result = session_service.analyze(sample_client.id, rows)
    assert result.summary.ready_to_import is False

    account_service.create_account(sample_client.id, "Travel", AccountType.EXPENSE, number="7100")
    summary, _ = session_service.validate_accounts(sample_client.id, result.session_id)

    assert summary.ready_to_import is True


# Mapping

def test_update_mappings_completes_mapping_stage(session_service, sample_client, sample_accounts):
    rows = [make_row("1000", debit="5"), make_row("Stationery", credit="5")]
    result = session_service.analyze(sample_client.id, rows)

    stored = session_service.update_mappings(
        sample_client.id,
        result.session_id,
        {"stationery": AccountMapping("stationery", MappingAction.MAP, sample_accounts["6100"].id, "same thing")},
    )

    session = session_service.get_session(sample_client.id, result.session_id)
    assert session.status == SessionStatus.MATCHED
    assert session.stage == SessionStage.ANALYZED
    assert {m.account_ref for m in stored} == {"1000", "Stationery"}


def test_update_mappings_replaces_previous_decision(session_service, sample_client, sample_accounts):
    rows = [make_row("Stationery", debit="5"), make_row("1000", credit="5")]
    result = session_service.analyze(sample_client.id, rows)

    session_service.update_mappings(sample_client.id, result.session_id, [AccountMapping("Stationery", MappingAction.SKIP)])
    stored = session_service.update_mappings(
        sample_client.id, result.session_id, [AccountMapping("Stationery", MappingAction.CREATE)]
    )

    decisions = {m.account_ref: m.action for m in stored}
    assert decisions["Stationery"] == MappingAction.CREATE
    assert len(stored) == 2


def test_update_mappings_rejects_unknown_ref(session_service, sample_client, sample_accounts, matched_rows):
    result = session_service.analyze(sample_client.id, matched_rows)

    with pytest.raises(ValidationError):
        session_service.update_mappings(
            sample_client.id, result.session_id, [AccountMapping("9998", MappingAction.CREATE)]
        )


def test_update_mappings_rejects_unusable_target(session_service, account_service, sample_client, sample_accounts):
    rows = [make_row("Stationery", debit="5"), make_row("1000", credit="5")]
    result = session_service.analyze(sample_client.id, rows)
    account_service.deactivate_account(sample_accounts["6100"].id)

    with pytest.raises(ValidationError):
        session_service.update_mappings(
            sample_client.id,
            result.session_id,
            [AccountMapping("Stationery", MappingAction.MAP, sample_accounts["6100"].id)],
        )
    with pytest.raises(ValidationError):
        session_service.update_mappings(
            sample_client.id, result.session_id, [AccountMapping("Stationery", MappingAction.MAP, None)]
        )


def test_mappings_frozen_once_import_started(session_service, temp_db, sample_client, sample_accounts, matched_rows):
    result = session_service.analyze(sample_client.id, matched_rows)
    temp_db.update_import_session(result.session_id, SessionStatus.PROCESSING, SessionStage.IMPORTING)

    with pytest.raises(SessionLockedError):
        session_service.update_mappings(
            sample_client.id, result.session_id, [AccountMapping("1000", MappingAction.SKIP)]
        )


# Import

def test_start_import_requires_every_mapping(session_service, sample_client, sample_accounts):
    rows = [make_row("1000", debit="5"), make_row("Stationery", credit="5")]
    result = session_service.analyze(sample_client.id, rows)

    with pytest.raises(ValidationError, match="Stationery"):
        session_service.start_import(sample_client.id, result.session_id)

    assert session_service.get_session(sample_client.id, result.session_id).status == SessionStatus.PENDING


def test_start_import_posts_every_row(session_service, journal_service, sample_client, sample_accounts, matched_rows):
    result = session_service.analyze(sample_client.id, matched_rows)

    outcome = session_service.start_import(sample_client.id, result.session_id)

    assert outcome.status == SessionStatus.COMPLETED
    assert outcome.successful == 4
    assert outcome.skipped == 0
    assert outcome.errors == []
    session = session_service.get_session(sample_client.id, result.session_id)
    assert session.status == SessionStatus.COMPLETED
    assert session.stage == SessionStage.COMPLETED

    entries = journal_service.list_entries(sample_client.id, session_id=result.session_id)
    assert len(entries) == 4
    _assert_double_entry(entries)
    cash_line = entries[0].lines[0]
    assert cash_line.account_id == sample_accounts["1000"].id
    assert cash_line.debit_amount == Decimal("500.00")


def test_clearing_account_nets_to_zero_for_balanced_ledger(
    session_service, journal_service, temp_db, sample_client, sample_accounts, matched_rows
):
    result = session_service.analyze(sample_client.id, matched_rows)
    session_service.start_import(sample_client.id, result.session_id)

    clearing = temp_db.get_account_by_number(sample_client.id, "9999")
    lines = [
        line
        for entry in journal_service.list_entries(sample_client.id)
        for line in entry.lines
        if line.account_id == clearing.id
    ]
    assert len(lines) == 4
    assert sum(l.debit_amount for l in lines) == sum(l.credit_amount for l in lines)


def test_row_with_deleted_account_is_skipped(
    session_service, account_service, journal_service, sample_client, sample_accounts
):
    """Ten rows, the sixth posts to an account deleted after analysis."""
    rows = _balanced_pairs(10)
    rows[5] = make_row("2000", credit="10.00", day=6, description="Row 6")
    result = session_service.analyze(sample_client.id, rows)
    account_service.delete_account(sample_accounts["2000"].id)

    outcome = session_service.start_import(sample_client.id, result.session_id)

    assert outcome.successful == 9
    assert outcome.skipped == 1
    assert outcome.errors[0].startswith("Row 6:")
    assert outcome.status == SessionStatus.COMPLETED
    entries = journal_service.list_entries(sample_client.id, session_id=result.session_id)
    assert len(entries) == 9
    assert "Row 6" not in {e.description for e in entries}
    _assert_double_entry(entries)

    snapshot = session_service.progress.snapshot(sample_client.id)
    assert (snapshot.imported, snapshot.skipped, snapshot.progress, snapshot.total) == (9, 1, 10, 10)
    assert snapshot.is_active is False
    assert snapshot.status == "completed"


def test_missing_account_created_once(session_service, account_service, sample_client, sample_accounts):
    rows = [
        make_row("7100", debit="40", account_name="Travel"),
        make_row("1000", credit="40"),
        make_row("7100", debit="15", account_name="Travel"),
        make_row("1000", credit="15"),
    ]
    result = session_service.analyze(sample_client.id, rows)

    outcome = session_service.start_import(
        sample_client.id,
        result.session_id,
        mappings=[AccountMapping("7100", MappingAction.CREATE)],
    )

    assert outcome.successful == 4
    created = [a for a in account_service.list_accounts(sample_client.id) if a.number == "7100"]
    assert len(created) == 1
    assert created[0].name == "Travel"
    assert created[0].account_type == AccountType.EXPENSE


def test_ref_to_inactive_account_is_not_created(
    session_service, account_service, journal_service, sample_client, sample_accounts
):
    account_service.deactivate_account(sample_accounts["6200"].id)
    rows = [make_row("Rent", debit="900"), make_row("1000", credit="900")]
    result = session_service.analyze(sample_client.id, rows)

    [rent] = [a for a in result.account_analysis if a.account_ref == "Rent"]
    assert rent.can_create is False
    assert "exists but is inactive" in rent.error
    assert session_service.default_mappings(sample_client.id, result.session_id)[0].action == MappingAction.SKIP

    outcome = session_service.start_import(
        sample_client.id,
        result.session_id,
        mappings=[AccountMapping("Rent", MappingAction.CREATE)],
    )

    assert (outcome.successful, outcome.skipped) == (1, 1)
    assert "6200 Rent' exists but is inactive" in outcome.errors[0]
    assert "already exists" not in outcome.errors[0]
    names = [a.name for a in account_service.list_accounts(sample_client.id, include_inactive=True)]
    assert names.count("Rent") == 1


def test_creation_disabled_skips_rows(session_service, account_service, sample_client, sample_accounts):
    rows = [make_row("Travel", debit="40"), make_row("1000", credit="40")]
    result = session_service.analyze(sample_client.id, rows)

    outcome = session_service.start_import(
        sample_client.id,
        result.session_id,
        mappings={"Travel": AccountMapping("Travel", MappingAction.CREATE)},
        create_missing_accounts=False,
    )

    assert outcome.successful == 1
    assert outcome.skipped == 1
    assert "creation is disabled" in outcome.errors[0]
    assert all(a.name != "Travel" for a in account_service.list_accounts(sample_client.id))


def test_skip_mapping_and_invalid_rows_are_skipped(session_service, sample_client, sample_accounts):
    rows = [
        make_row("Ignore Me", debit="1"),
        make_row("1000", debit="5", day=None),
        make_row("4000"),
        make_row("6100", debit="3", credit="3"),
        make_row("1000", debit="7"),
    ]
    result = session_service.analyze(sample_client.id, rows)

    outcome = session_service.start_import(
        sample_client.id, result.session_id, mappings=[AccountMapping("Ignore Me", MappingAction.SKIP)]
    )

    assert outcome.successful == 1
    assert outcome.skipped == 4
    assert [e.split(":")[0] for e in outcome.errors] == ["Row 1", "Row 2", "Row 3", "Row 4"]
    assert "mapped to skip" in outcome.errors[0]
    assert "Entry date is required" in outcome.errors[1]
    assert "At least 2 lines" in outcome.errors[2]
    assert "both debit and credit" in outcome.errors[3]


def test_clearing_number_held_by_other_account_blocks_import(
    session_service, account_service, journal_service, sample_client, sample_accounts
):
    account_service.create_account(sample_client.id, "Petty Cash Float", AccountType.ASSET, number="9999")
    rows = [make_row("1000", debit="5"), make_row("4000", credit="5")]
    result = session_service.analyze(sample_client.id, rows)

    with pytest.raises(ConflictError, match="Petty Cash Float"):
        session_service.start_import(sample_client.id, result.session_id)

    session = session_service.get_session(sample_client.id, result.session_id)
    assert session.status == SessionStatus.MATCHED
    assert journal_service.list_entries(sample_client.id) == []


def test_reimporting_same_rows_skips_duplicates(session_service, journal_service, sample_client, sample_accounts):
    rows = _balanced_pairs(4)
    first = session_service.analyze(sample_client.id, rows)
    session_service.start_import(sample_client.id, first.session_id)

    second = session_service.analyze(sample_client.id, rows)
    outcome = session_service.start_import(sample_client.id, second.session_id)

    assert outcome.status == SessionStatus.COMPLETED
    assert (outcome.successful, outcome.skipped) == (0, 4)
    assert all("Duplicate of journal entry" in e for e in outcome.errors)
    assert f"import session {first.session_id}" in outcome.errors[0]
    assert journal_service.list_entries(sample_client.id, session_id=second.session_id) == []


def test_duplicate_check_compares_amounts_and_can_be_disabled(
    session_service, journal_service, sample_client, sample_accounts
):
    rows = _balanced_pairs(2)
    first = session_service.analyze(sample_client.id, rows)
    session_service.start_import(sample_client.id, first.session_id)

    changed = [make_row("1000", debit="11.00", day=1, description="Row 1"), rows[1]]
    second = session_service.analyze(sample_client.id, changed)
    outcome = session_service.start_import(sample_client.id, second.session_id)
    assert (outcome.successful, outcome.skipped) == (1, 1)

    third = session_service.analyze(sample_client.id, rows)
    outcome = session_service.start_import(sample_client.id, third.session_id, skip_duplicates=False)
    assert (outcome.successful, outcome.skipped) == (2, 0)


def test_negative_amounts_move_to_other_side(session_service, journal_service, sample_client, sample_accounts):
    rows = [make_row("1000", debit="-25"), make_row("4000", debit="25")]
    result = session_service.analyze(sample_client.id, rows)

    session_service.start_import(sample_client.id, result.session_id)

    first = journal_service.list_entries(sample_client.id)[0].lines[0]
    assert first.debit_amount == Decimal("0")
    assert first.credit_amount == Decimal("25")


def test_accept_defaults_fills_unmapped_refs(session_service, account_service, sample_client, sample_accounts):
    rows = [make_row("1000", debit="5"), make_row("Travel", credit="5"), make_row("!!!", credit="1")]
    result = session_service.analyze(sample_client.id, rows)

    outcome = session_service.start_import(sample_client.id, result.session_id, accept_defaults=True)

    assert outcome.successful == 2
    assert outcome.skipped == 1
    assert any(a.name == "Travel" for a in account_service.list_accounts(sample_client.id))


def test_completed_session_accepts_no_writes(session_service, sample_client, sample_accounts, matched_rows):
    result = session_service.analyze(sample_client.id, matched_rows)
    session_service.start_import(sample_client.id, result.session_id)

    with pytest.raises(StaleSessionError):
        session_service.start_import(sample_client.id, result.session_id)
    with pytest.raises(StaleSessionError):
        session_service.update_mappings(sample_client.id, result.session_id, [])
    with pytest.raises(StaleSessionError):
        session_service.cancel(sample_client.id, result.session_id)


def test_cancel_stops_running_import(
    session_service, journal_service, monkeypatch, sample_client, sample_accounts
):
    rows = _balanced_pairs(8)
    result = session_service.analyze(sample_client.id, rows)
    original = session_service.journal_service.create_entry
    posted = []

    def create_then_cancel(client_id, candidate, session_id=None):
        entry_id = original(client_id, candidate, session_id=session_id)
        posted.append(entry_id)
        if len(posted) == 3:
            session_service.cancel(client_id, session_id)
        return entry_id

    monkeypatch.setattr(session_service.journal_service, "create_entry", create_then_cancel)

    outcome = session_service.start_import(sample_client.id, result.session_id)

    assert outcome.status == SessionStatus.CANCELLED
    assert outcome.successful == 3
    assert "cancelled" in outcome.message
    assert len(journal_service.list_entries(sample_client.id, session_id=result.session_id)) == 3
    snapshot = session_service.progress.snapshot(sample_client.id)
    assert snapshot.status == "cancelled"
    assert snapshot.is_active is False
    assert snapshot.progress == 3
    with pytest.raises(StaleSessionError):
        session_service.update_mappings(sample_client.id, result.session_id, [])


def test_store_failure_fails_session(
    session_service, journal_service, temp_db, monkeypatch, sample_client, sample_accounts
):
    rows = _balanced_pairs(6)
    result = session_service.analyze(sample_client.id, rows)
    original = temp_db.create_journal_entry
    calls = []

    def flaky(*args, **kwargs):
        calls.append(1)
        if len(calls) == 3:
            raise OperationalError("INSERT INTO journal_entries", {}, Exception("disk I/O error"))
        return original(*args, **kwargs)

    monkeypatch.setattr(temp_db, "create_journal_entry", flaky)

    with pytest.raises(SessionFailure):
        session_service.start_import(sample_client.id, result.session_id)

    session = session_service.get_session(sample_client.id, result.session_id)
    assert session.status == SessionStatus.FAILED
    assert session.stage == SessionStage.FAILED
    assert "disk I/O error" in session.error_message
    # Committed rows stay committed
    assert len(journal_service.list_entries(sample_client.id, session_id=result.session_id)) == 2
    snapshot = session_service.progress.snapshot(sample_client.id)
    assert snapshot.status == "failed"
    assert snapshot.is_active is False


def test_constraint_violation_skips_only_that_row(
    session_service, journal_service, temp_db, monkeypatch, sample_client, sample_accounts
):
    rows = _balanced_pairs(4)
    result = session_service.analyze(sample_client.id, rows)
    original = temp_db.create_journal_entry
    calls = []

    def duplicate_on_second(*args, **kwargs):
        calls.append(1)
        if len(calls) == 2:
            raise IntegrityError("INSERT INTO journal_entries", {}, Exception("UNIQUE constraint failed"))
        return original(*args, **kwargs)

    monkeypatch.setattr(temp_db, "create_journal_entry", duplicate_on_second)

    outcome = session_service.start_import(sample_client.id, result.session_id)

    assert outcome.status == SessionStatus.COMPLETED
    assert (outcome.successful, outcome.skipped) == (len(rows) - 1, 1)
    assert outcome.errors[0].startswith("Row 2:")
    assert "UNIQUE constraint failed" in outcome.errors[0]
    assert len(journal_service.list_entries(sample_client.id, session_id=result.session_id)) == len(rows) - 1


def test_reject_staged_session(session_service, sample_client, sample_accounts, matched_rows):
    result = session_service.analyze(sample_client.id, matched_rows)

    session = session_service.reject(sample_client.id, result.session_id)

    assert session.status == SessionStatus.REJECTED
    assert session_service.get_active_session(sample_client.id) is None
    with pytest.raises(StaleSessionError):
        session_service.reject(sample_client.id, result.session_id)


def test_reject_refuses_running_import(session_service, temp_db, sample_client, sample_accounts, matched_rows):
    result = session_service.analyze(sample_client.id, matched_rows)
    temp_db.update_import_session(result.session_id, SessionStatus.PROCESSING, SessionStage.IMPORTING)

    with pytest.raises(SessionLockedError):
        session_service.reject(sample_client.id, result.session_id)


def test_fail_stalled(session_service, temp_db, clock, sample_client, sample_accounts, matched_rows):
    result = session_service.analyze(sample_client.id, matched_rows)
    temp_db.update_import_session(result.session_id, SessionStatus.PROCESSING, SessionStage.IMPORTING)
    session_service.progress.start(session_service.get_session(sample_client.id, result.session_id), 4)

    clock.advance(minutes=10)
    assert session_service.fail_stalled(sample_client.id, timedelta(minutes=30)) == []

    failed = session_service.fail_stalled(sample_client.id, timedelta(minutes=5))

    assert [s.id for s in failed] == [result.session_id]
    assert failed[0].status == SessionStatus.FAILED
    assert session_service.progress.snapshot(sample_client.id).is_active is False
