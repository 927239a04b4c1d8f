from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from group_ledger.errors import InconsistentVoidStateError
from group_ledger.models import LedgerSnapshot, SourceKind, Transaction
from group_ledger.normalizers import normalize
from group_ledger.statement import build_statement
from tests.helpers import records as r


def _credit(day: date, amount: int, desc: str = "credit") -> Transaction:
    return Transaction(
        date=datetime(day.year, day.month, day.day, 10, tzinfo=UTC),
        description=desc,
        source_kind=SourceKind.CONTRIBUTION,
        source_id=desc,
        credit=Decimal(amount),
    )


def _debit(day: date, amount: int, desc: str = "debit") -> Transaction:
    return Transaction(
        date=datetime(day.year, day.month, day.day, 10, tzinfo=UTC),
        description=desc,
        source_kind=SourceKind.PENALTY,
        source_id=desc,
        debit=Decimal(amount),
    )


def test_opening_balance_and_running_rows() -> None:
    txs = [_credit(date(2024, 2, 5), 1000, "feb"), _credit(date(2024, 1, 10), 5000, "jan")]
    st = build_statement(txs, date(2024, 2, 1), date(2024, 2, 29))

    assert st.opening_balance == Decimal(5000)
    assert len(st.rows) == 1
    row = st.rows[0]
    assert row.date.date() == date(2024, 2, 5)
    assert row.credit == Decimal(1000) and row.debit is None
    assert row.balance == Decimal(6000)
    assert st.closing_balance == Decimal(6000)


def test_empty_window_closes_at_opening_balance() -> None:
    st = build_statement([_credit(date(2024, 1, 10), 5000)], date(2024, 3, 1), date(2024, 3, 31))
    assert st.rows == ()
    assert st.opening_balance == st.closing_balance == Decimal(5000)


def test_no_start_means_zero_opening_and_everything_up_to_end() -> None:
    txs = [_credit(date(2024, 1, 10), 5000), _debit(date(2024, 2, 1), 500)]
    st = build_statement(txs, None, date(2024, 1, 31))
    assert st.opening_balance == 0
    assert [row.balance for row in st.rows] == [Decimal(5000)]


def test_balance_identity() -> None:
    txs = [
        _credit(date(2024, 1, 3), 1000, "a"),
        _debit(date(2024, 1, 20), 250, "b"),
        _credit(date(2024, 2, 2), 700, "c"),
        _debit(date(2024, 2, 14), 100, "d"),
        _credit(date(2024, 3, 1), 50, "e"),
    ]
    st = build_statement(txs, date(2024, 1, 15), date(2024, 2, 28))
    net = sum(((row.credit or 0) - (row.debit or 0) for row in st.rows), Decimal(0))
    assert st.closing_balance == st.opening_balance + net
    for prev, row in zip(st.rows, st.rows[1:], strict=False):
        assert row.balance == prev.balance + (row.credit or 0) - (row.debit or 0)


def test_ties_keep_input_order() -> None:
    day = date(2024, 4, 1)
    st = build_statement([_credit(day, 1, "first"), _debit(day, 1, "second")])
    assert [row.description for row in st.rows] == ["first", "second"]


def test_widening_the_end_never_changes_the_opening_balance() -> None:
    txs = [_credit(date(2024, 1, 10), 5000), _credit(date(2024, 2, 5), 1000)]
    narrow = build_statement(txs, date(2024, 2, 1), date(2024, 2, 10))
    wide = build_statement(txs, date(2024, 2, 1), date(2024, 12, 31))
    assert narrow.opening_balance == wide.opening_balance
    assert set(narrow.rows) <= set(wide.rows)


def test_moving_the_start_earlier_shifts_rows_out_of_the_opening_balance() -> None:
    txs = [
        _credit(date(2024, 1, 10), 5000, "jan-credit"),
        _debit(date(2024, 1, 20), 250, "jan-debit"),
        _credit(date(2024, 2, 5), 1000, "feb-credit"),
    ]
    narrow = build_statement(txs, date(2024, 2, 1), date(2024, 2, 29))
    wide = build_statement(txs, date(2024, 1, 15), date(2024, 2, 29))

    before = {row.description for row in narrow.rows}
    added = [row for row in wide.rows if row.description not in before]
    added_net = sum(((row.credit or 0) - (row.debit or 0) for row in added), Decimal(0))
    assert len(wide.rows) >= len(narrow.rows)
    assert [row.description for row in added] == ["jan-debit"]
    assert wide.opening_balance == narrow.opening_balance - added_net
    assert wide.closing_balance == narrow.closing_balance


def test_statement_is_idempotent() -> None:
    txs = [_credit(date(2024, 1, 10), 5000), _debit(date(2024, 2, 5), 300)]
    assert build_statement(txs, date(2024, 2, 1)) == build_statement(txs, date(2024, 2, 1))


def test_voided_contribution_does_not_move_the_balance() -> None:
    snapshot = LedgerSnapshot(
        contributions=[
            r.contribution("kept", date_paid="2024-04-10"),
            r.contribution("void", date_paid="2024-04-11", status="voided"),
        ]
    )
    st = build_statement(normalize(snapshot).transactions)
    assert [row.description for row in st.rows] == ["Contribution for Apr 2024"]
    assert st.closing_balance == Decimal(2500)


def test_countable_voided_transaction_is_an_invariant_violation() -> None:
    bad = Transaction(
        date=datetime(2024, 4, 10, tzinfo=UTC),
        description="leaked",
        source_kind=SourceKind.CONTRIBUTION,
        source_id="c9",
        credit=Decimal(100),
        source_voided=True,
    )
    with pytest.raises(InconsistentVoidStateError):
        build_statement([bad])


def test_lenient_mode_logs_and_drops_the_leaked_line(monkeypatch, caplog) -> None:
    monkeypatch.setenv("GROUP_LEDGER_STRICT_INVARIANTS", "0")
    caplog.set_level(logging.ERROR, logger="group_ledger")
    bad = Transaction(
        date=datetime(2024, 4, 10, tzinfo=UTC),
        description="leaked",
        source_kind=SourceKind.CONTRIBUTION,
        source_id="c9",
        credit=Decimal(100),
        source_voided=True,
    )
    st = build_statement([bad, _credit(date(2024, 4, 11), 10)])
    assert st.closing_balance == Decimal(10)
    assert "statement:inconsistent_void_state" in caplog.text
