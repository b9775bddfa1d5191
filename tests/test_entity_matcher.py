"""Tests for bill / invoice scoring."""

from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal

import pytest

from ledgerlink.config import MatchingConfig
from ledgerlink.domain.entities import BankTransaction, Bill, Contact, DocumentStatus, Invoice
from ledgerlink.domain.entity_matcher import (
    EntityMatcher,
    score_amount,
    score_date,
    score_name,
)


def _expense(amount="500.00", txn_date=date(2024, 3, 1), description="PAYMENT ACME CORP"):
    return BankTransaction(
        id=1,
        client_id=1,
        date=txn_date,
        description=description,
        debit_amount=Decimal("0"),
        credit_amount=Decimal(amount),
    )


def _income(amount="250.00", txn_date=date(2024, 3, 1), description="DEPOSIT GLOBEX"):
    return BankTransaction(
        id=2,
        client_id=1,
        date=txn_date,
        description=description,
        debit_amount=Decimal(amount),
        credit_amount=Decimal("0"),
    )


def _bill(id, amount, bill_date, contact_id=1):
    return Bill(
        id=id,
        client_id=1,
        contact_id=contact_id,
        bill_number=f"B-{id}",
        bill_date=bill_date,
        total_amount=Decimal(amount),
    )


def _invoice(id, amount, invoice_date, contact_id=2):
    return Invoice(
        id=id,
        client_id=1,
        contact_id=contact_id,
        invoice_number=f"INV-{id}",
        invoice_date=invoice_date,
        total_amount=Decimal(amount),
    )


@pytest.fixture
def contacts():
    return [
        Contact(id=1, client_id=1, name="Acme Corp"),
        Contact(id=2, client_id=1, name="Globex", company_name="Globex Corporation"),
    ]


@pytest.fixture
def matcher():
    return EntityMatcher()


def test_exact_bill_match_scores_100(matcher, contacts):
    """$500 payment to Acme two days before a $500 Acme bill."""
    bill = _bill(10, "500.00", date(2024, 3, 3))

    result = matcher.match(_expense(), [bill], contacts)

    assert result is not None
    assert result.counterpart_id == 10
    assert result.contact_id == 1
    assert result.score == 100
    best = result.all_matches[0]
    assert (best.amount_points, best.date_points, best.name_points) == (50, 30, 20)


def test_weak_candidate_is_not_surfaced(matcher, contacts):
    """$550, 40 days away, no name hit: 20 points is below the threshold."""
    bill = _bill(11, "550.00", date(2024, 4, 10), contact_id=None)

    assert matcher.score(_expense(description="CARD PAYMENT"), bill, None) == 20
    assert matcher.match(_expense(description="CARD PAYMENT"), [bill], contacts) is None


@pytest.mark.parametrize(
    "candidate,expected",
    [
        ("500.00", 50),
        ("504.00", 50),
        ("520.00", 35),
        ("550.00", 20),
        ("560.00", 0),
        ("0", 0),
    ],
)
def test_amount_tiers(candidate, expected):
    assert score_amount(Decimal("500.00"), Decimal(candidate)) == expected


def test_amount_zero_transaction_scores_nothing():
    assert score_amount(Decimal("0"), Decimal("500")) == 0


@pytest.mark.parametrize(
    "days,expected",
    [(0, 30), (7, 30), (8, 20), (14, 20), (15, 10), (30, 10), (31, 0)],
)
def test_date_tiers(days, expected):
    assert score_date(date(2024, 3, 1), date.fromordinal(date(2024, 3, 1).toordinal() + days)) == expected


def test_missing_or_unparseable_dates_score_zero():
    assert score_date(None, date(2024, 3, 1)) == 0
    assert score_date(date(2024, 3, 1), None) == 0
    assert score_date("not a date", date(2024, 3, 1)) == 0


def test_date_accepts_datetimes():
    assert score_date(datetime(2024, 3, 1, 23, 0), date(2024, 3, 5)) == 30


def test_name_hits_are_capped(contacts):
    globex = contacts[1]

    assert score_name("transfer from globex corporation", globex) == 30
    assert score_name("GLOBEX payment", globex) == 20
    assert score_name("unrelated", globex) == 0
    assert score_name(None, globex) == 0
    assert score_name("GLOBEX", None) == 0


def test_total_never_exceeds_100(matcher, contacts):
    txn = _income(description="GLOBEX CORPORATION REMITTANCE")
    invoice = _invoice(5, "250.00", date(2024, 3, 1))

    assert matcher.score(txn, invoice, contacts[1]) == 100


def test_candidates_sorted_by_score(matcher, contacts):
    far = _bill(20, "500.00", date(2024, 3, 20))
    near = _bill(21, "500.00", date(2024, 3, 2))
    close_amount = _bill(22, "520.00", date(2024, 3, 2))

    result = matcher.match(_expense(), [far, close_amount, near], contacts)

    assert result.counterpart_id == 21
    assert [m.counterpart_id for m in result.all_matches] == [21, 22, 20]
    assert [m.score for m in result.all_matches] == [100, 85, 80]


def test_ties_go_to_lowest_candidate_id(matcher, contacts):
    a = _bill(31, "500.00", date(2024, 3, 2))
    b = _bill(30, "500.00", date(2024, 3, 2))

    result = matcher.match(_expense(), [a, b], contacts)

    assert result.counterpart_id == 30
    assert [m.counterpart_id for m in result.all_matches] == [30, 31]


def test_threshold_is_configurable(contacts):
    strict = EntityMatcher(MatchingConfig(min_score=90))
    bill = _bill(40, "500.00", date(2024, 3, 20))

    assert strict.match(_expense(), [bill], contacts) is None
    assert EntityMatcher().match(_expense(), [bill], contacts) is not None


def test_eligible_pool_follows_direction(matcher):
    bills = [_bill(1, "10", None)]
    invoices = [_invoice(2, "10", None)]
    both = BankTransaction(
        id=3, client_id=1, date=None, description=None,
        debit_amount=Decimal("5"), credit_amount=Decimal("5"),
    )
    neither = BankTransaction(id=4, client_id=1, date=None, description=None)

    assert matcher.eligible_pool(_expense(), bills, invoices) == bills
    assert matcher.eligible_pool(_income(), bills, invoices) == invoices
    assert matcher.eligible_pool(both, bills, invoices) == ()
    assert matcher.eligible_pool(neither, bills, invoices) == ()


def test_empty_pool_has_no_match(matcher, contacts):
    assert matcher.match(_expense(), [], contacts) is None


def test_match_only_scores_the_kind_the_direction_allows(matcher, contacts):
    bill = _bill(1, "500.00", date(2024, 3, 3))
    invoice = _invoice(2, "250.00", date(2024, 3, 1))
    both = BankTransaction(
        id=3, client_id=1, date=date(2024, 3, 1), description="PAYMENT ACME CORP",
        debit_amount=Decimal("500"), credit_amount=Decimal("500"),
    )

    assert matcher.match(_income(amount="500.00", description="ACME CORP"), [bill], contacts) is None
    assert matcher.match(_expense(amount="250.00", description="GLOBEX"), [invoice], contacts) is None
    assert matcher.match(both, [bill], contacts) is None
    assert matcher.match(_expense(), [invoice, bill], contacts).counterpart_id == 1


def test_paid_documents_are_not_candidates(matcher, contacts):
    paid = replace(_bill(1, "500.00", date(2024, 3, 3)), status=DocumentStatus.PAID, bank_transaction_id=9)
    open_bill = _bill(2, "500.00", date(2024, 3, 25))

    result = matcher.match(_expense(), [paid, open_bill], contacts)

    assert [m.counterpart_id for m in result.all_matches] == [2]
