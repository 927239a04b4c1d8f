"""Running-balance statements over a normalized transaction stream."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from .errors import InconsistentVoidStateError
from .logging_setup import get_logger
from .models import ZERO, DateWindow, Transaction

_logger = get_logger("group_ledger.statement")


@dataclass(frozen=True, slots=True)
class StatementRow:
    date: datetime
    description: str
    debit: Decimal | None
    credit: Decimal | None
    balance: Decimal


@dataclass(frozen=True, slots=True)
class Statement:
    opening_balance: Decimal
    rows: tuple[StatementRow, ...]
    closing_balance: Decimal


def _strict_invariants() -> bool:
    v = os.getenv("GROUP_LEDGER_STRICT_INVARIANTS")
    if v is None:
        return True
    return v.strip().lower() not in {"0", "false", "no"}


def _countable(transactions: Iterable[Transaction]) -> list[Transaction]:
    strict = _strict_invariants()
    kept: list[Transaction] = []
    for tx in transactions:
        if tx.excluded:
            continue
        if tx.source_voided:
            msg = (
                f"voided {tx.source_kind} {tx.source_id} produced a countable transaction "
                f"({tx.description!r})"
            )
            if strict:
                raise InconsistentVoidStateError(msg)
            _logger.error("statement:inconsistent_void_state %s", msg)
            continue
        kept.append(tx)
    return kept


def build_statement(
    transactions: Iterable[Transaction],
    window_start: date | datetime | None = None,
    window_end: date | datetime | None = None,
) -> Statement:
    """Compute opening balance, windowed running-balance rows, and closing balance.

    - Excluded transactions never count.
    - ``opening_balance`` sums ``credit - debit`` over transactions dated
      strictly before ``window_start`` (zero when there is no start).
    - Rows cover ``[window_start, window_end]`` inclusive, in ascending date
      order; ties keep their input order.
    - ``closing_balance`` is the last running balance, or the opening balance
      when the window holds no transactions.
    """

    window = DateWindow(window_start, window_end)
    ordered = sorted(_countable(transactions), key=lambda t: t.date)

    opening = ZERO
    for tx in ordered:
        if window.precedes(tx.date):
            opening += tx.net

    running = opening
    rows: list[StatementRow] = []
    for tx in ordered:
        if not window.contains(tx.date):
            continue
        running += tx.net
        rows.append(
            StatementRow(
                date=tx.date,
                description=tx.description,
                debit=tx.debit,
                credit=tx.credit,
                balance=running,
            )
        )

    return Statement(opening_balance=opening, rows=tuple(rows), closing_balance=running)


__all__ = ["Statement", "StatementRow", "build_statement"]
