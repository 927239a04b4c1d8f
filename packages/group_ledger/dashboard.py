"""Dashboard headline metrics.

Figures are for the calendar month of ``as_of`` except the fund total, which
is the closing balance of the latest bank snapshot at or before that month.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict, Field

from .contributions import list_contribution_details
from .errors import MalformedRecordError
from .logging_setup import get_logger
from .models import (
    ZERO,
    BankBalanceSnapshot,
    DateWindow,
    Lateness,
    LedgerSnapshot,
    Milestone,
    SourceRecord,
)
from .normalizers import parse_record
from .summary import build_summary

_logger = get_logger("group_ledger.dashboard")


class DashboardMetrics(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    total_funds: Decimal = Field(alias="totalFunds")
    total_expenditures: Decimal = Field(alias="totalExpenditures")
    total_contributions: Decimal = Field(alias="totalContributions")
    project_completion_percentage: int = Field(alias="projectCompletionPercentage", ge=0, le=100)
    overdue_contributions_count: int = Field(alias="overdueContributionsCount", ge=0)


def latest_bank_balance(bank_balances: Sequence[SourceRecord], *, month_year: str) -> Decimal:
    """Closing balance of the newest snapshot with ``monthYear <= month_year``."""

    latest: BankBalanceSnapshot | None = None
    for record in bank_balances:
        try:
            b = parse_record(BankBalanceSnapshot, record, collection="bankBalances")
        except MalformedRecordError as e:
            _logger.warning("dashboard:skipped_record doc_id=%s reason=%s", e.doc_id, e.reason)
            continue
        if b.month_year > month_year:
            continue
        if latest is None or b.month_year > latest.month_year:
            latest = b
    if latest is None:
        return ZERO
    if latest.closing_balance is not None:
        return latest.closing_balance
    return latest.opening_balance or ZERO


def completion_percentage(milestones: Sequence[SourceRecord]) -> int:
    parsed: list[Milestone] = []
    for record in milestones:
        try:
            parsed.append(parse_record(Milestone, record, collection="milestones"))
        except MalformedRecordError as e:
            _logger.warning("dashboard:skipped_record doc_id=%s reason=%s", e.doc_id, e.reason)
    if not parsed:
        return 0
    done = sum(1 for m in parsed if m.is_completed)
    pct = (Decimal(done) * 100 / Decimal(len(parsed))).quantize(Decimal("1"), ROUND_HALF_UP)
    return int(pct)


def compute_dashboard_metrics(
    snapshot: LedgerSnapshot,
    milestones: Sequence[SourceRecord] = (),
    *,
    as_of: datetime,
) -> DashboardMetrics:
    window = DateWindow.for_month(as_of.year, as_of.month)
    summary = build_summary(snapshot, window.start, window.end)

    late = list_contribution_details(
        snapshot.contributions, window=window, lateness=Lateness.LATE
    )
    overdue_members = {d.user_id or d.member_name for d in late.lines}

    metrics = DashboardMetrics(
        total_funds=latest_bank_balance(snapshot.bank_balances, month_year=f"{as_of:%Y-%m}"),
        total_expenditures=summary.total_expenditure,
        total_contributions=summary.total_for("Contributions Received"),
        project_completion_percentage=completion_percentage(milestones),
        overdue_contributions_count=len(overdue_members),
    )
    _logger.info(
        "dashboard:computed month=%s funds=%s overdue=%d",
        f"{as_of:%Y-%m}",
        metrics.total_funds,
        metrics.overdue_contributions_count,
    )
    return metrics


__all__ = [
    "DashboardMetrics",
    "completion_percentage",
    "compute_dashboard_metrics",
    "latest_bank_balance",
]
