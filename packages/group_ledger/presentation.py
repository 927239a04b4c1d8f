"""Structural transform from computed figures to a renderable report.

Nothing here computes a figure: statements, summaries and contribution
listings arrive fully computed and are only laid out as columns, rows and
summary lines. Monetary values stay exact ``Decimal`` on the :class:`Report`;
:meth:`Report.to_dict` renders them as strings for JSON consumers.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum, StrEnum
from typing import Any

from .contributions import ContributionDetails
from .errors import SkippedRecord
from .models import utc_day
from .settings import MemberTaxEntry
from .statement import Statement
from .summary import Summary


class ReportKind(StrEnum):
    MEMBER_STATEMENT = "member_statement"
    FINANCIAL_ACTIVITY = "financial_activity"
    ANNUAL_TAX_SUMMARY = "annual_tax_summary"
    CONTRIBUTION_DETAILS = "contribution_details"

    @property
    def heading(self) -> str:
        return _TITLES[self]


_TITLES: Mapping[ReportKind, str] = {
    ReportKind.MEMBER_STATEMENT: "Member Statement",
    ReportKind.FINANCIAL_ACTIVITY: "Financial Activity",
    ReportKind.ANNUAL_TAX_SUMMARY: "Annual Financial Summary",
    ReportKind.CONTRIBUTION_DETAILS: "Contribution Details",
}


@dataclass(frozen=True, slots=True)
class ReportColumn:
    key: str
    header: str


@dataclass(frozen=True, slots=True)
class SummaryLine:
    label: str
    value: Decimal | str | int


@dataclass(frozen=True, slots=True)
class Report:
    title: str
    date_range: str
    currency_symbol: str
    columns: tuple[ReportColumn, ...]
    rows: tuple[Mapping[str, Any], ...]
    summary: tuple[SummaryLine, ...] = ()
    warnings: tuple[str, ...] = ()
    kind: ReportKind | None = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly mapping (decimals as strings, dates as ISO)."""

        return {
            "kind": None if self.kind is None else self.kind.value,
            "title": self.title,
            "dateRange": self.date_range,
            "currencySymbol": self.currency_symbol,
            "columns": [{"accessorKey": c.key, "header": c.header} for c in self.columns],
            "data": [{k: _jsonable(v) for k, v in row.items()} for row in self.rows],
            "summary": [{"label": s.label, "value": _jsonable(s.value)} for s in self.summary],
            "warnings": list(self.warnings),
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list | tuple):
        return [_jsonable(v) for v in value]
    return value


def _money(label: str, currency_symbol: str) -> str:
    return f"{label} ({currency_symbol})"


def skipped_banner(skipped: Sequence[SkippedRecord]) -> tuple[str, ...]:
    if not skipped:
        return ()
    return (f"{len(skipped)} malformed record(s) were skipped; totals exclude them.",)


# ---------------------------------------------------------------------------
# Per-kind layouts
# ---------------------------------------------------------------------------


def _statement_report(
    statement: Statement,
    *,
    currency_symbol: str,
    date_range: str,
    subject: str | None,
    skipped: Sequence[SkippedRecord],
    **_: Any,
) -> Report:
    columns = (
        ReportColumn("date", "Date"),
        ReportColumn("description", "Description"),
        ReportColumn("debit", _money("Debit", currency_symbol)),
        ReportColumn("credit", _money("Credit", currency_symbol)),
        ReportColumn("balance", _money("Balance", currency_symbol)),
    )
    rows = tuple(
        {
            "date": utc_day(r.date),
            "description": r.description,
            "debit": r.debit,
            "credit": r.credit,
            "balance": r.balance,
        }
        for r in statement.rows
    )
    summary: list[SummaryLine] = []
    if subject:
        summary.append(SummaryLine("Member", subject))
    summary += [
        SummaryLine("Opening Balance", statement.opening_balance),
        SummaryLine("Closing Balance", statement.closing_balance),
    ]
    return Report(
        title=ReportKind.MEMBER_STATEMENT.heading,
        date_range=date_range,
        currency_symbol=currency_symbol,
        columns=columns,
        rows=rows,
        summary=tuple(summary),
        warnings=skipped_banner(skipped),
        kind=ReportKind.MEMBER_STATEMENT,
    )


def _category_columns(currency_symbol: str) -> tuple[ReportColumn, ...]:
    return (
        ReportColumn("category", "Category"),
        ReportColumn("type", "Type"),
        ReportColumn("amount", _money("Amount", currency_symbol)),
    )


def _totals_lines(summary: Summary) -> list[SummaryLine]:
    return [
        SummaryLine("Total Income", summary.total_income),
        SummaryLine("Total Expenditure", summary.total_expenditure),
        SummaryLine("Net", summary.net),
    ]


def _activity_report(
    summary: Summary,
    *,
    currency_symbol: str,
    date_range: str,
    skipped: Sequence[SkippedRecord],
    **_: Any,
) -> Report:
    # Period reports leave out categories with nothing in them
    rows = tuple(
        {"category": ct.name, "type": ct.type, "amount": ct.total}
        for ct in summary.category_totals
        if ct.total != 0
    )
    return Report(
        title=ReportKind.FINANCIAL_ACTIVITY.heading,
        date_range=date_range,
        currency_symbol=currency_symbol,
        columns=_category_columns(currency_symbol),
        rows=rows,
        summary=tuple(_totals_lines(summary)),
        warnings=skipped_banner(skipped or summary.skipped),
        kind=ReportKind.FINANCIAL_ACTIVITY,
    )


def _tax_report(
    summary: Summary,
    *,
    currency_symbol: str,
    date_range: str,
    skipped: Sequence[SkippedRecord],
    subject: str | None = None,
    roster: Sequence[MemberTaxEntry] = (),
    company_tax_pin: str | None = None,
    **_: Any,
) -> Report:
    rows = tuple(
        {"category": ct.name, "type": ct.type, "amount": ct.total}
        for ct in summary.category_totals
    )
    lines: list[SummaryLine] = []
    if subject:
        lines.append(SummaryLine("Financial Year", subject))
    lines.append(SummaryLine("Company Tax PIN", company_tax_pin or "Not set"))
    lines += _totals_lines(summary)
    lines += [
        SummaryLine(f"Member TPIN - {m.name}", m.tpin or "Not provided") for m in roster
    ]
    return Report(
        title=ReportKind.ANNUAL_TAX_SUMMARY.heading,
        date_range=date_range,
        currency_symbol=currency_symbol,
        columns=_category_columns(currency_symbol),
        rows=rows,
        summary=tuple(lines),
        warnings=skipped_banner(skipped or summary.skipped),
        kind=ReportKind.ANNUAL_TAX_SUMMARY,
    )


def _contribution_report(
    details: ContributionDetails,
    *,
    currency_symbol: str,
    date_range: str,
    subject: str | None,
    skipped: Sequence[SkippedRecord],
    **_: Any,
) -> Report:
    columns = (
        ReportColumn("datePaid", "Date Paid"),
        ReportColumn("memberName", "Member"),
        ReportColumn("months", "Months Covered"),
        ReportColumn("amount", _money("Amount", currency_symbol)),
        ReportColumn("penaltyPaidAmount", _money("Penalty Paid", currency_symbol)),
        ReportColumn("status", "Status"),
    )
    rows = tuple(
        {
            "datePaid": None if d.date_paid is None else utc_day(d.date_paid),
            "memberName": d.member_name,
            "months": d.months,
            "amount": d.amount,
            "penaltyPaidAmount": d.penalty_paid_amount,
            "status": d.lateness.label,
        }
        for d in details.lines
    )
    lines: list[SummaryLine] = []
    if subject:
        lines.append(SummaryLine("Member", subject))
    lines += [
        SummaryLine("Total Contributions", details.total_amount),
        SummaryLine("Total Penalty Payments", details.total_penalty_paid),
        SummaryLine("Records", len(details.lines)),
        SummaryLine("Voided Records", details.voided_count),
    ]
    return Report(
        title=ReportKind.CONTRIBUTION_DETAILS.heading,
        date_range=date_range,
        currency_symbol=currency_symbol,
        columns=columns,
        rows=rows,
        summary=tuple(lines),
        warnings=skipped_banner(skipped or details.skipped),
        kind=ReportKind.CONTRIBUTION_DETAILS,
    )


_LAYOUTS: Mapping[ReportKind, Callable[..., Report]] = {
    ReportKind.MEMBER_STATEMENT: _statement_report,
    ReportKind.FINANCIAL_ACTIVITY: _activity_report,
    ReportKind.ANNUAL_TAX_SUMMARY: _tax_report,
    ReportKind.CONTRIBUTION_DETAILS: _contribution_report,
}


def present(
    kind: ReportKind,
    data: Statement | Summary | ContributionDetails,
    *,
    currency_symbol: str,
    date_range: str,
    subject: str | None = None,
    skipped: Sequence[SkippedRecord] = (),
    roster: Sequence[MemberTaxEntry] = (),
    company_tax_pin: str | None = None,
) -> Report:
    """Lay out computed ``data`` as a :class:`Report` of the given ``kind``.

    ``subject`` names what the report is about (the member for statements and
    contribution listings, the year for the tax summary). ``skipped`` adds a
    warning banner; summaries and listings carry their own skipped records
    and use them when none are passed.
    """

    expected = {
        ReportKind.MEMBER_STATEMENT: Statement,
        ReportKind.FINANCIAL_ACTIVITY: Summary,
        ReportKind.ANNUAL_TAX_SUMMARY: Summary,
        ReportKind.CONTRIBUTION_DETAILS: ContributionDetails,
    }[kind]
    if not isinstance(data, expected):
        raise TypeError(f"{kind} reports need {expected.__name__}, got {type(data).__name__}")
    return _LAYOUTS[kind](
        data,
        currency_symbol=currency_symbol,
        date_range=date_range,
        subject=subject,
        skipped=skipped,
        roster=roster,
        company_tax_pin=company_tax_pin,
    )


__all__ = [
    "Report",
    "ReportColumn",
    "ReportKind",
    "SummaryLine",
    "present",
    "skipped_banner",
]
