from __future__ import annotations

from datetime import date
from decimal import Decimal

from group_ledger.models import LedgerSnapshot
from group_ledger.summary import CATEGORIES, CategoryType, build_summary
from tests.helpers import records as r


def _snapshot(**overrides) -> LedgerSnapshot:
    base = dict(
        contributions=[
            r.contribution("c1", date_paid="2024-04-10", penaltyPaidAmount=500),
            r.contribution("c2", amount=3000, date_paid="2024-04-12"),
        ],
        penalties=[r.penalty(date_issued="2024-04-02")],
        expenses=[r.expense(date="2024-04-15")],
        rent_invoices=[r.rent_invoice(), r.rent_invoice("r2", status="Overdue")],
        bank_balances=[r.bank_balance()],
        professionals=[r.professional()],
    )
    base.update(overrides)
    return LedgerSnapshot(**base)


def test_category_totals_follow_the_taxonomy() -> None:
    s = build_summary(_snapshot())

    assert [ct.name for ct in s.category_totals] == [c.name for c in CATEGORIES]
    assert s.total_for("Contributions Received") == Decimal(6000)  # 2500 + 500 + 3000
    assert s.total_for("Rental Income") == Decimal(30000)
    assert s.total_for("Bank Interest Earned") == Decimal(250)
    assert s.total_for("Operating Expenses") == Decimal(1200)
    assert s.total_for("Professional Fees Paid") == Decimal(10000)
    assert s.total_for("Bank Charges") == Decimal(75)
    assert s.total_income == Decimal(36250)
    assert s.total_expenditure == Decimal(11275)
    assert s.net == s.total_income - s.total_expenditure


def test_penalties_are_not_expenditure() -> None:
    with_penalty = build_summary(_snapshot())
    without = build_summary(_snapshot(penalties=[]))
    assert with_penalty.total_expenditure == without.total_expenditure


def test_voiding_removes_exactly_that_contribution() -> None:
    before = build_summary(_snapshot())
    voided = _snapshot(
        contributions=[
            r.contribution("c1", date_paid="2024-04-10", penaltyPaidAmount=500),
            r.contribution("c2", amount=3000, date_paid="2024-04-12", status="voided"),
        ]
    )
    after = build_summary(voided)
    assert before.total_income - after.total_income == Decimal(3000)
    assert after.total_expenditure == before.total_expenditure


def test_zero_categories_are_still_present() -> None:
    s = build_summary(_snapshot(rent_invoices=[]), date(2024, 1, 1), date(2024, 12, 31))
    rental = next(ct for ct in s.category_totals if ct.name == "Rental Income")
    assert rental.total == 0 and rental.type is CategoryType.INCOME


def test_window_filters_every_source() -> None:
    s = build_summary(_snapshot(), date(2024, 5, 1), date(2024, 5, 31))
    assert s.total_income == 0 and s.total_expenditure == 0
    assert len(s.category_totals) == len(CATEGORIES)


def test_malformed_records_surface_in_skipped() -> None:
    s = build_summary(_snapshot(expenses=[r.expense(total_amount="n/a")]))
    assert [(x.collection, x.doc_id) for x in s.skipped] == [("expenses", "e1")]
    assert s.total_for("Operating Expenses") == 0


def test_out_of_range_date_skips_only_that_expense() -> None:
    s = build_summary(
        _snapshot(expenses=[r.expense("far", date=1e20), r.expense("e2", date="2024-04-15")])
    )
    assert [(x.collection, x.doc_id) for x in s.skipped] == [("expenses", "far")]
    assert s.total_for("Operating Expenses") == Decimal(1200)
    assert s.total_for("Contributions Received") == Decimal(6000)
