from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from group_ledger.contributions import list_contribution_details
from group_ledger.errors import SkippedRecord
from group_ledger.models import LedgerSnapshot
from group_ledger.normalizers import normalize
from group_ledger.presentation import ReportKind, present, skipped_banner
from group_ledger.settings import MemberTaxEntry
from group_ledger.statement import build_statement
from group_ledger.summary import build_summary
from tests.helpers import records as r


def _statement():
    ledger = normalize(
        LedgerSnapshot(
            contributions=[r.contribution(date_paid="2024-04-10")],
            penalties=[r.penalty(date_issued="2024-03-01")],
        )
    )
    return build_statement(ledger.transactions, date(2024, 4, 1), date(2024, 4, 30))


def test_statement_layout_and_currency_headers() -> None:
    report = present(
        ReportKind.MEMBER_STATEMENT,
        _statement(),
        currency_symbol="MK",
        date_range="April 1, 2024 - April 30, 2024",
        subject="Alice Banda",
    )

    assert report.title == "Member Statement"
    assert [c.header for c in report.columns] == [
        "Date",
        "Description",
        "Debit (MK)",
        "Credit (MK)",
        "Balance (MK)",
    ]
    (row,) = report.rows
    assert row["date"] == date(2024, 4, 10)
    assert row["credit"] == Decimal(2500) and row["balance"] == Decimal(2000)
    assert [(s.label, s.value) for s in report.summary] == [
        ("Member", "Alice Banda"),
        ("Opening Balance", Decimal(-500)),
        ("Closing Balance", Decimal(2000)),
    ]
    assert report.warnings == ()


def test_to_dict_is_json_friendly() -> None:
    out = present(
        ReportKind.MEMBER_STATEMENT, _statement(), currency_symbol="$", date_range="All Time"
    ).to_dict()

    assert out["kind"] == "member_statement"
    assert out["currencySymbol"] == "$"
    assert out["columns"][2] == {"accessorKey": "debit", "header": "Debit ($)"}
    assert out["data"][0]["date"] == "2024-04-10"
    assert out["data"][0]["balance"] == "2000"
    assert out["data"][0]["debit"] is None
    assert {"label": "Closing Balance", "value": "2000"} in out["summary"]


def test_activity_report_drops_zero_rows_but_keeps_totals() -> None:
    summary = build_summary(
        LedgerSnapshot(expenses=[r.expense()], contributions=[r.contribution()])
    )
    report = present(
        ReportKind.FINANCIAL_ACTIVITY, summary, currency_symbol="MK", date_range="All Time"
    )

    assert [row["category"] for row in report.rows] == [
        "Contributions Received",
        "Operating Expenses",
    ]
    assert report.to_dict()["data"][0]["type"] == "Income"
    assert [s.label for s in report.summary] == ["Total Income", "Total Expenditure", "Net"]
    assert report.summary[-1].value == Decimal(1300)


def test_tax_report_lists_every_category_and_the_roster() -> None:
    summary = build_summary(LedgerSnapshot(), date(2024, 1, 1), date(2024, 12, 31))
    roster = [MemberTaxEntry("m1", "Alice Banda", "T-1001"), MemberTaxEntry("m2", "Bo", None)]
    report = present(
        ReportKind.ANNUAL_TAX_SUMMARY,
        summary,
        currency_symbol="MK",
        date_range="January 1, 2024 - December 31, 2024",
        subject="2024",
        roster=roster,
        company_tax_pin=None,
    )

    assert report.title == "Annual Financial Summary"
    assert len(report.rows) == 6
    assert all(row["amount"] == 0 for row in report.rows)
    labels = {s.label: s.value for s in report.summary}
    assert labels["Financial Year"] == "2024"
    assert labels["Company Tax PIN"] == "Not set"
    assert labels["Member TPIN - Alice Banda"] == "T-1001"
    assert labels["Member TPIN - Bo"] == "Not provided"


def test_contribution_report_shows_voided_rows_with_status() -> None:
    details = list_contribution_details(
        [
            r.contribution("a", date_paid="2024-04-10"),
            r.contribution("b", date_paid="2024-05-10", status="voided"),
        ]
    )
    report = present(
        ReportKind.CONTRIBUTION_DETAILS, details, currency_symbol="MK", date_range="All Time"
    )

    assert [row["status"] for row in report.rows] == ["Voided", "On Time"]
    assert report.rows[1]["months"] == ("Apr 2024",)
    summary = {s.label: s.value for s in report.summary}
    assert summary["Total Contributions"] == Decimal(2500)
    assert summary["Records"] == 2 and summary["Voided Records"] == 1
    assert report.to_dict()["data"][1]["months"] == ["Apr 2024"]


def test_skipped_records_become_a_banner() -> None:
    skipped = [SkippedRecord("expenses", "e1", "bad amount")]
    assert skipped_banner(skipped) == (
        "1 malformed record(s) were skipped; totals exclude them.",
    )
    report = present(
        ReportKind.MEMBER_STATEMENT,
        _statement(),
        currency_symbol="MK",
        date_range="All Time",
        skipped=skipped,
    )
    assert len(report.warnings) == 1


def test_summary_skips_feed_the_banner() -> None:
    summary = build_summary(LedgerSnapshot(expenses=[r.expense(total_amount="??")]))
    report = present(
        ReportKind.FINANCIAL_ACTIVITY, summary, currency_symbol="MK", date_range="All Time"
    )
    assert report.warnings and report.rows == ()


def test_wrong_data_type_is_rejected() -> None:
    with pytest.raises(TypeError):
        present(
            ReportKind.FINANCIAL_ACTIVITY, _statement(), currency_symbol="MK", date_range="All Time"
        )
