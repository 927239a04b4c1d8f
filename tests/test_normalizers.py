from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from group_ledger.models import DateWindow, LedgerSnapshot, SourceKind
from group_ledger.normalizers import PENALTY_PAYMENT_DESCRIPTION, normalize
from tests.helpers import records as r


def _by_kind(ledger, kind: SourceKind):
    return [t for t in ledger.transactions if t.source_kind is kind]


def test_contribution_with_penalty_payment_yields_two_credits() -> None:
    ledger = normalize(
        LedgerSnapshot(
            contributions=[r.contribution(months=["2024-05", "2024-04"], penaltyPaidAmount=500)]
        )
    )
    main, pen = ledger.transactions
    assert main.credit == Decimal(2500) and main.debit is None
    assert main.description == "Contribution for Apr 2024, May 2024"
    assert pen.credit == Decimal(500)
    assert pen.description == PENALTY_PAYMENT_DESCRIPTION
    assert not ledger.skipped


def test_voided_contribution_is_kept_but_excluded() -> None:
    ledger = normalize(
        LedgerSnapshot(contributions=[r.contribution(status="Voided", penaltyPaidAmount=500)])
    )
    (tx,) = ledger.transactions
    assert tx.excluded and tx.source_voided
    assert tx.net == 0
    assert tx.description.endswith("(Voided)")


def test_missing_status_means_active() -> None:
    ledger = normalize(LedgerSnapshot(contributions=[r.contribution(status=None)]))
    (tx,) = ledger.transactions
    assert not tx.excluded and tx.credit == Decimal(2500)


def test_org_sources_map_to_their_sides() -> None:
    snapshot = LedgerSnapshot(
        penalties=[r.penalty()],
        expenses=[r.expense()],
        rent_invoices=[r.rent_invoice(), r.rent_invoice("r2", status="Sent")],
        bank_balances=[r.bank_balance(), r.bank_balance("b2", month_year="2024-05", interest=0)],
        professionals=[r.professional()],
    )
    ledger = normalize(snapshot)

    (pen,) = _by_kind(ledger, SourceKind.PENALTY)
    assert pen.debit == Decimal(500)

    (exp,) = _by_kind(ledger, SourceKind.EXPENSE)
    assert exp.debit == Decimal(1200)

    (rent,) = _by_kind(ledger, SourceKind.RENTAL_INCOME)
    assert rent.credit == Decimal(30000)
    assert rent.description == "Rent - Chikondi Phiri (INV-001)"

    interest = _by_kind(ledger, SourceKind.BANK_INTEREST)
    assert [t.credit for t in interest] == [Decimal(250)]
    assert interest[0].description == "Bank Interest Earned (2024-04)"
    assert interest[0].day == date(2024, 4, 1)

    charges = _by_kind(ledger, SourceKind.BANK_CHARGE)
    assert [t.debit for t in charges] == [Decimal(75), Decimal(75)]

    (fee,) = _by_kind(ledger, SourceKind.PROFESSIONAL_FEE)
    assert fee.debit == Decimal(10000)
    assert fee.description == "Payment to Grace Mwale (Architect)"
    assert fee.source_id == "pr1#paymentHistory[0]"


def test_window_uses_each_natural_date_field() -> None:
    snapshot = LedgerSnapshot(
        contributions=[
            r.contribution("in", date_paid="2024-04-30T23:00:00Z"),
            r.contribution("out", date_paid="2024-05-01T00:00:00Z"),
        ],
        expenses=[r.expense("e-in", date="2024-04-01"), r.expense("e-out", date="2024-03-31")],
        bank_balances=[r.bank_balance("b-in"), r.bank_balance("b-out", month_year="2024-05")],
        professionals=[
            r.professional(
                payments=[
                    {"date": "2024-04-20", "amountPaid": 100},
                    {"date": "2024-06-20", "amountPaid": 200},
                ]
            )
        ],
    )
    ledger = normalize(snapshot, DateWindow.for_month(2024, 4))
    ids = {t.source_id for t in ledger.transactions}
    assert ids == {"in", "e-in", "b-in", "pr1#paymentHistory[0]"}


def test_malformed_records_are_skipped_and_reported(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="group_ledger")
    snapshot = LedgerSnapshot(
        contributions=[
            r.contribution("ok"),
            r.contribution("bad-amount", amount="lots"),
            r.contribution("no-date", date_paid=None),
        ],
        expenses=[{"id": "e-bad", "description": "no amount", "date": "2024-04-01"}],
        professionals=[
            r.professional(
                payments=[{"date": "2024-04-20", "amountPaid": -10}, {"date": "2024-04-21"}]
            )
        ],
    )
    ledger = normalize(snapshot)

    assert [t.source_id for t in ledger.transactions] == ["ok"]
    skipped = {(s.collection, s.doc_id) for s in ledger.skipped}
    assert skipped == {
        ("contributions", "bad-amount"),
        ("contributions", "no-date"),
        ("expenses", "e-bad"),
        ("professionals", "pr1#paymentHistory[0]"),
        ("professionals", "pr1#paymentHistory[1]"),
    }
    assert "normalize:skipped_record" in caplog.text


def test_normalize_is_deterministic() -> None:
    snapshot = LedgerSnapshot(
        contributions=[r.contribution()],
        expenses=[r.expense()],
        bank_balances=[r.bank_balance()],
    )
    assert normalize(snapshot) == normalize(snapshot)
