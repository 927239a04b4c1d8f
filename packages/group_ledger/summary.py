"""Organization-wide income/expenditure aggregation.

One taxonomy serves the period reports, the financial-activity summary and the
annual tax summary:

Income
    Contributions Received, Rental Income, Bank Interest Earned
Expenditure
    Operating Expenses, Professional Fees Paid, Bank Charges

Each total is a sum of normalized credits (income) or debits (expenditure) of
the matching source kind, windowed by each source's natural date field (see
:func:`group_ledger.normalizers.normalize`). Penalty debits are member
receivables and do not belong to any category.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from .errors import SkippedRecord
from .logging_setup import get_logger
from .models import ZERO, DateWindow, LedgerSnapshot, SourceKind, Transaction
from .normalizers import normalize

_logger = get_logger("group_ledger.summary")


class CategoryType(StrEnum):
    INCOME = "Income"
    EXPENDITURE = "Expenditure"


@dataclass(frozen=True, slots=True)
class Category:
    name: str
    type: CategoryType
    source_kind: SourceKind


# Fixed order; reports list categories in this order.
CATEGORIES: tuple[Category, ...] = (
    Category("Contributions Received", CategoryType.INCOME, SourceKind.CONTRIBUTION),
    Category("Rental Income", CategoryType.INCOME, SourceKind.RENTAL_INCOME),
    Category("Bank Interest Earned", CategoryType.INCOME, SourceKind.BANK_INTEREST),
    Category("Operating Expenses", CategoryType.EXPENDITURE, SourceKind.EXPENSE),
    Category("Professional Fees Paid", CategoryType.EXPENDITURE, SourceKind.PROFESSIONAL_FEE),
    Category("Bank Charges", CategoryType.EXPENDITURE, SourceKind.BANK_CHARGE),
)


@dataclass(frozen=True, slots=True)
class CategoryTotal:
    name: str
    type: CategoryType
    total: Decimal


@dataclass(frozen=True, slots=True)
class Summary:
    category_totals: tuple[CategoryTotal, ...]
    total_income: Decimal
    total_expenditure: Decimal
    net: Decimal
    skipped: tuple[SkippedRecord, ...] = ()

    def total_for(self, name: str) -> Decimal:
        for ct in self.category_totals:
            if ct.name == name:
                return ct.total
        raise KeyError(name)


def _category_amount(category: Category, tx: Transaction) -> Decimal:
    if tx.excluded or tx.source_kind is not category.source_kind:
        return ZERO
    if category.type is CategoryType.INCOME:
        return tx.credit or ZERO
    return tx.debit or ZERO


def summarize_transactions(
    transactions: tuple[Transaction, ...] | list[Transaction],
    *,
    skipped: tuple[SkippedRecord, ...] = (),
) -> Summary:
    """Aggregate already-windowed transactions into the fixed taxonomy."""

    totals: list[CategoryTotal] = []
    for category in CATEGORIES:
        total = sum((_category_amount(category, tx) for tx in transactions), ZERO)
        totals.append(CategoryTotal(category.name, category.type, total))

    income = sum((ct.total for ct in totals if ct.type is CategoryType.INCOME), ZERO)
    expenditure = sum((ct.total for ct in totals if ct.type is CategoryType.EXPENDITURE), ZERO)
    return Summary(
        category_totals=tuple(totals),
        total_income=income,
        total_expenditure=expenditure,
        net=income - expenditure,
        skipped=skipped,
    )


def build_summary(
    snapshot: LedgerSnapshot,
    window_start: date | datetime | None = None,
    window_end: date | datetime | None = None,
) -> Summary:
    """Compute category totals, total income/expenditure and net for a window.

    All six categories are always present in ``category_totals`` (zero totals
    included); period reports may drop zero rows at presentation time.
    """

    window = DateWindow(window_start, window_end)
    ledger = normalize(snapshot, window)
    summary = summarize_transactions(ledger.transactions, skipped=ledger.skipped)
    _logger.info(
        "summary:built window=%r income=%s expenditure=%s skipped=%d",
        window.label,
        summary.total_income,
        summary.total_expenditure,
        len(summary.skipped),
    )
    return summary


__all__ = [
    "CATEGORIES",
    "Category",
    "CategoryTotal",
    "CategoryType",
    "Summary",
    "build_summary",
    "summarize_transactions",
]
