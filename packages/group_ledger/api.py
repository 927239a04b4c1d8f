"""Public report builders for the ``group_ledger`` package.

Each builder reads a snapshot from a :class:`~group_ledger.store.RecordSource`,
runs the pure engine (normalize → statement/summary) and lays the result out
with :func:`~group_ledger.presentation.present`. Store errors propagate as-is.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import date, datetime

from .contributions import list_contribution_details
from .errors import MalformedRecordError
from .lateness import DEFAULT_DUE_DAY, classify, filter_by_lateness
from .logging_setup import get_logger
from .models import DateWindow, Lateness, Member, SourceRecord
from .normalizers import normalize, parse_record
from .presentation import Report, ReportKind, present
from .settings import load_settings, member_tax_roster
from .statement import build_statement
from .store import RecordSource, fetch_ledger_snapshot
from .summary import build_summary

_logger = get_logger("group_ledger.api")


def _member_name(source: RecordSource, member_id: str) -> str:
    doc = source.get("users", member_id)
    if doc is None:
        # Members are usually keyed by uid, but older exports keep uid as a field
        matches = source.fetch("users", {"uid": member_id})
        doc = matches[0] if matches else None
    if doc is None:
        return member_id
    try:
        m = parse_record(Member, doc, collection="users")
    except MalformedRecordError:
        return member_id
    return m.name or member_id


def build_member_statement(
    source: RecordSource,
    member_id: str,
    window_start: date | datetime | None = None,
    window_end: date | datetime | None = None,
) -> Report:
    """Running-balance statement of one member's contributions and penalties."""

    window = DateWindow(window_start, window_end)
    settings = load_settings(source)
    snapshot = fetch_ledger_snapshot(source, member_id=member_id)
    # Unwindowed so the opening balance sees everything before the start
    ledger = normalize(snapshot)
    statement = build_statement(ledger.transactions, window.start, window.end)
    _logger.info(
        "api:member_statement member=%s rows=%d skipped=%d",
        member_id,
        len(statement.rows),
        len(ledger.skipped),
    )
    return present(
        ReportKind.MEMBER_STATEMENT,
        statement,
        currency_symbol=settings.currency_symbol,
        date_range=window.label,
        subject=_member_name(source, member_id),
        skipped=ledger.skipped,
    )


def build_financial_activity_summary(
    source: RecordSource,
    window_start: date | datetime | None = None,
    window_end: date | datetime | None = None,
) -> Report:
    """Organization-wide income and expenditure by category for a window."""

    window = DateWindow(window_start, window_end)
    settings = load_settings(source)
    summary = build_summary(fetch_ledger_snapshot(source), window.start, window.end)
    return present(
        ReportKind.FINANCIAL_ACTIVITY,
        summary,
        currency_symbol=settings.currency_symbol,
        date_range=window.label,
    )


def build_annual_tax_summary(source: RecordSource, year: int) -> Report:
    """Calendar-year summary with every category, the company PIN and member TPINs."""

    window = DateWindow.for_year(year)
    settings = load_settings(source)
    summary = build_summary(fetch_ledger_snapshot(source), window.start, window.end)
    return present(
        ReportKind.ANNUAL_TAX_SUMMARY,
        summary,
        currency_symbol=settings.currency_symbol,
        date_range=window.label,
        subject=str(year),
        roster=member_tax_roster(source),
        company_tax_pin=settings.company_tax_pin,
    )


def build_contribution_details(
    source: RecordSource,
    window_start: date | datetime | None = None,
    window_end: date | datetime | None = None,
    *,
    member_id: str | None = None,
    lateness: Lateness | None = None,
    due_day: int = DEFAULT_DUE_DAY,
) -> Report:
    """Contribution audit listing; voided rows are shown but not totalled."""

    window = DateWindow(window_start, window_end)
    settings = load_settings(source)
    where = {"userId": member_id} if member_id is not None else None
    details = list_contribution_details(
        source.fetch("contributions", where),
        window=window,
        lateness=lateness,
        due_day=due_day,
    )
    return present(
        ReportKind.CONTRIBUTION_DETAILS,
        details,
        currency_symbol=settings.currency_symbol,
        date_range=window.label,
        subject=None if member_id is None else _member_name(source, member_id),
    )


def classify_lateness(contribution: SourceRecord, *, due_day: int = DEFAULT_DUE_DAY) -> Lateness:
    return classify(contribution, due_day=due_day)


def filter_contributions(
    contributions: Iterable[SourceRecord],
    lateness: Lateness,
    *,
    due_day: int = DEFAULT_DUE_DAY,
) -> Iterator[SourceRecord]:
    return filter_by_lateness(contributions, lateness, due_day=due_day)


__all__ = [
    "build_annual_tax_summary",
    "build_contribution_details",
    "build_financial_activity_summary",
    "build_member_statement",
    "classify_lateness",
    "filter_contributions",
]
