"""Source records → normalized ledger transactions.

Implements the fixed mapping from each store collection to
:class:`~group_ledger.models.Transaction` lines:

- contribution (not voided): credit = ``amount`` when > 0, plus a separate
  "Penalty Payment Received" credit when ``penaltyPaidAmount`` > 0;
- contribution (voided): one excluded line with zero amounts, kept for audit;
- penalty: debit = ``amount``;
- expense: debit = ``totalAmount``;
- rent invoice: credit = ``rentAmount`` only when the status is "Paid";
- bank balance snapshot: credit = ``interestEarned`` and debit =
  ``bankCharges``, each only when > 0;
- professional payment history entry: debit = ``amountPaid``.

When a :class:`~group_ledger.models.DateWindow` is supplied each source is
restricted by its own natural date field (bank snapshots by their
``monthYear`` key). Malformed records are skipped and reported; they never
abort the rest of the batch. Output order follows the input order per source;
callers sort by date.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import MalformedRecordError, SkippedRecord
from .logging_setup import get_logger
from .models import (
    ZERO,
    BankBalanceSnapshot,
    Contribution,
    DateWindow,
    Expense,
    LedgerSnapshot,
    Penalty,
    Professional,
    ProfessionalPayment,
    RentInvoice,
    SourceKind,
    SourceRecord,
    Transaction,
    format_month,
)

PENALTY_PAYMENT_DESCRIPTION = "Penalty Payment Received"

_logger = get_logger("group_ledger.normalizers")

_M = TypeVar("_M", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class NormalizedLedger:
    """Transactions produced from a snapshot plus the records left out."""

    transactions: tuple[Transaction, ...]
    skipped: tuple[SkippedRecord, ...] = ()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _doc_id(record: Any) -> str | None:
    if isinstance(record, BaseModel):
        raw = getattr(record, "id", None)
    elif isinstance(record, Mapping):
        raw = record.get("id")
    else:
        raw = None
    return None if raw is None else str(raw)


def _validation_reason(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{loc}: {item.get('msg')}" if loc else str(item.get("msg")))
    return "; ".join(parts)


def parse_record(model: type[_M], record: SourceRecord, *, collection: str) -> _M:
    """Validate ``record`` into ``model`` or raise :class:`MalformedRecordError`."""

    if isinstance(record, model):
        return record
    payload: Any = record.model_dump(by_alias=True) if isinstance(record, BaseModel) else record
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise MalformedRecordError(collection, _doc_id(record), _validation_reason(e)) from e


def _parse_all(
    model: type[_M],
    records: Sequence[SourceRecord],
    *,
    collection: str,
    skipped: list[SkippedRecord],
) -> Iterator[_M]:
    for record in records:
        try:
            yield parse_record(model, record, collection=collection)
        except MalformedRecordError as e:
            _logger.warning(
                "normalize:skipped_record collection=%s doc_id=%s reason=%s",
                e.collection,
                e.doc_id,
                e.reason,
            )
            skipped.append(SkippedRecord.from_error(e))


def _contribution_description(c: Contribution) -> str:
    if not c.months_covered:
        return "Contribution"
    return "Contribution for " + ", ".join(format_month(m) for m in c.months_covered)


# ---------------------------------------------------------------------------
# Per-source mappings
# ---------------------------------------------------------------------------


def _from_contribution(c: Contribution) -> Iterator[Transaction]:
    if c.date_paid is None:
        raise MalformedRecordError("contributions", c.id, "datePaid is required")
    description = _contribution_description(c)
    if c.is_voided:
        yield Transaction(
            date=c.date_paid,
            description=f"{description} (Voided)",
            source_kind=SourceKind.CONTRIBUTION,
            source_id=c.id,
            debit=ZERO,
            credit=ZERO,
            excluded=True,
            source_voided=True,
        )
        return
    if c.amount > 0:
        yield Transaction(
            date=c.date_paid,
            description=description,
            source_kind=SourceKind.CONTRIBUTION,
            source_id=c.id,
            credit=c.amount,
        )
    if c.penalty_paid_amount is not None and c.penalty_paid_amount > 0:
        yield Transaction(
            date=c.date_paid,
            description=PENALTY_PAYMENT_DESCRIPTION,
            source_kind=SourceKind.CONTRIBUTION,
            source_id=c.id,
            credit=c.penalty_paid_amount,
        )


def _from_penalty(p: Penalty) -> Iterator[Transaction]:
    yield Transaction(
        date=p.date_issued,
        description=p.description or "Penalty",
        source_kind=SourceKind.PENALTY,
        source_id=p.id,
        debit=p.amount,
    )


def _from_expense(e: Expense) -> Iterator[Transaction]:
    yield Transaction(
        date=e.date,
        description=e.description or e.category or "Expense",
        source_kind=SourceKind.EXPENSE,
        source_id=e.id,
        debit=e.total_amount,
    )


def _from_rent_invoice(inv: RentInvoice) -> Iterator[Transaction]:
    if not inv.is_paid:
        return
    label = "Rent"
    if inv.tenant_name:
        label = f"Rent - {inv.tenant_name}"
    if inv.invoice_number:
        label = f"{label} ({inv.invoice_number})"
    yield Transaction(
        date=inv.invoice_date,
        description=label,
        source_kind=SourceKind.RENTAL_INCOME,
        source_id=inv.id,
        credit=inv.rent_amount,
    )


def _from_bank_balance(b: BankBalanceSnapshot) -> Iterator[Transaction]:
    if b.interest_earned is not None and b.interest_earned > 0:
        yield Transaction(
            date=b.month_start,
            description=f"Bank Interest Earned ({b.month_year})",
            source_kind=SourceKind.BANK_INTEREST,
            source_id=b.id,
            credit=b.interest_earned,
        )
    if b.bank_charges is not None and b.bank_charges > 0:
        yield Transaction(
            date=b.month_start,
            description=f"Bank Charges ({b.month_year})",
            source_kind=SourceKind.BANK_CHARGE,
            source_id=b.id,
            debit=b.bank_charges,
        )


def _from_professional(
    prof: Professional,
    window: DateWindow | None,
    skipped: list[SkippedRecord],
) -> Iterator[Transaction]:
    label = f"Payment to {prof.name}" if prof.name else "Professional Fee"
    if prof.service_type:
        label = f"{label} ({prof.service_type})"
    for i, raw in enumerate(prof.payment_history):
        entry_id = f"{prof.id}#paymentHistory[{i}]"
        try:
            payment = parse_record(ProfessionalPayment, raw, collection="professionals")
        except MalformedRecordError as e:
            _logger.warning(
                "normalize:skipped_record collection=professionals doc_id=%s reason=%s",
                entry_id,
                e.reason,
            )
            skipped.append(SkippedRecord("professionals", entry_id, e.reason))
            continue
        if window is not None and not window.contains(payment.date):
            continue
        if payment.amount_paid <= 0:
            continue
        yield Transaction(
            date=payment.date,
            description=label,
            source_kind=SourceKind.PROFESSIONAL_FEE,
            source_id=entry_id,
            debit=payment.amount_paid,
        )


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def normalize(snapshot: LedgerSnapshot, window: DateWindow | None = None) -> NormalizedLedger:
    """Map every record of ``snapshot`` to ledger transactions.

    Parameters
    ----------
    snapshot:
        Materialized source records (raw store mappings or validated models).
    window:
        Optional date window. When set, each source is filtered by its natural
        date field; bank snapshots by ``monthYear`` compared as ``YYYY-MM``
        text against the bounds.

    Returns
    -------
    NormalizedLedger
        ``transactions`` grouped by source in input order, and ``skipped``
        describing malformed records that were left out.
    """

    out: list[Transaction] = []
    skipped: list[SkippedRecord] = []

    def keep(instant: datetime) -> bool:
        return window is None or window.contains(instant)

    def emit(collection: str, doc_id: str | None, lines: Iterator[Transaction]) -> None:
        try:
            out.extend(list(lines))
        except MalformedRecordError as e:
            _logger.warning(
                "normalize:skipped_record collection=%s doc_id=%s reason=%s",
                collection,
                doc_id,
                e.reason,
            )
            skipped.append(SkippedRecord.from_error(e))

    for c in _parse_all(
        Contribution, snapshot.contributions, collection="contributions", skipped=skipped
    ):
        if c.date_paid is not None and not keep(c.date_paid):
            continue
        emit("contributions", c.id, _from_contribution(c))

    for p in _parse_all(Penalty, snapshot.penalties, collection="penalties", skipped=skipped):
        if keep(p.date_issued):
            emit("penalties", p.id, _from_penalty(p))

    for e in _parse_all(Expense, snapshot.expenses, collection="expenses", skipped=skipped):
        if keep(e.date):
            emit("expenses", e.id, _from_expense(e))

    for inv in _parse_all(
        RentInvoice, snapshot.rent_invoices, collection="rentInvoices", skipped=skipped
    ):
        if keep(inv.invoice_date):
            emit("rentInvoices", inv.id, _from_rent_invoice(inv))

    for b in _parse_all(
        BankBalanceSnapshot, snapshot.bank_balances, collection="bankBalances", skipped=skipped
    ):
        if window is None or window.contains_month(b.month_year):
            emit("bankBalances", b.id, _from_bank_balance(b))

    for prof in _parse_all(
        Professional, snapshot.professionals, collection="professionals", skipped=skipped
    ):
        emit("professionals", prof.id, _from_professional(prof, window, skipped))

    _logger.debug(
        "normalize:done transactions=%d skipped=%d windowed=%s",
        len(out),
        len(skipped),
        window is not None,
    )
    return NormalizedLedger(transactions=tuple(out), skipped=tuple(skipped))


__all__ = [
    "NormalizedLedger",
    "PENALTY_PAYMENT_DESCRIPTION",
    "normalize",
    "parse_record",
]
