"""Public interface for the ``group_ledger`` package.

This module exposes the report builders and the public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .api import (
    build_annual_tax_summary,
    build_contribution_details,
    build_financial_activity_summary,
    build_member_statement,
    classify_lateness,
    filter_contributions,
)
from .errors import (
    ContributionStateError,
    InconsistentVoidStateError,
    LedgerError,
    MalformedRecordError,
    RecordNotFoundError,
    SkippedRecord,
)
from .models import DateWindow, Lateness, LedgerSnapshot, SourceKind, Transaction
from .presentation import Report, ReportColumn, ReportKind, SummaryLine
from .store import InMemoryRecordSource, RecordSource, SqlRecordSource

__all__ = [
    # API
    "build_annual_tax_summary",
    "build_contribution_details",
    "build_financial_activity_summary",
    "build_member_statement",
    "classify_lateness",
    "filter_contributions",
    # Models / types
    "DateWindow",
    "Lateness",
    "LedgerSnapshot",
    "Report",
    "ReportColumn",
    "ReportKind",
    "SourceKind",
    "SummaryLine",
    "Transaction",
    # Stores
    "InMemoryRecordSource",
    "RecordSource",
    "SqlRecordSource",
    # Errors
    "ContributionStateError",
    "InconsistentVoidStateError",
    "LedgerError",
    "MalformedRecordError",
    "RecordNotFoundError",
    "SkippedRecord",
]
