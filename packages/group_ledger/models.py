"""Data models and type aliases for ``group_ledger``.

Source records arrive from the document store as camelCase mappings (see the
collection names in :data:`SNAPSHOT_COLLECTIONS`). They are validated into the
pydantic models below, which accept the loose shapes found in production data:

- instants as ``datetime``/``date``, ISO-8601 strings, epoch seconds or
  server-timestamp mappings (``{"seconds": ..., "nanoseconds": ...}``); all
  become timezone-aware UTC ``datetime`` values;
- amounts as numbers or numeric strings (thousands separators and a leading
  currency symbol are tolerated); all become exact ``Decimal`` values.

A record that fails validation is *malformed*: callers skip it and report it
rather than aborting a whole computation.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

ZERO = Decimal("0")

MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

# ---------------------------------------------------------------------------
# Coercion helpers (instants and money)
# ---------------------------------------------------------------------------


def _from_epoch(seconds: float, nanos: Any = 0) -> datetime:
    try:
        return datetime.fromtimestamp(seconds, UTC) + timedelta(microseconds=int(nanos) // 1000)
    except (OverflowError, OSError, TypeError) as exc:
        raise ValueError(f"epoch out of range: {seconds!r}") from exc


def to_instant(raw: Any) -> datetime | None:
    """Convert a store value into an aware UTC ``datetime`` (``None`` if blank)."""

    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError("boolean is not an instant")
    if isinstance(raw, datetime):
        dt = raw
    elif isinstance(raw, date):
        dt = datetime(raw.year, raw.month, raw.day)
    elif isinstance(raw, int | float):
        if not math.isfinite(raw):
            raise ValueError(f"invalid epoch value: {raw!r}")
        dt = _from_epoch(raw)
    elif isinstance(raw, str):
        s = raw.strip()
        if not s:
            return None
        try:
            dt = datetime.fromisoformat(s)
        except ValueError as exc:
            raise ValueError(f"invalid ISO-8601 instant: {raw!r}") from exc
    elif isinstance(raw, Mapping):
        # Server timestamp shapes: {seconds, nanoseconds} or {_seconds, _nanoseconds}
        seconds = raw.get("seconds", raw.get("_seconds"))
        nanos = raw.get("nanoseconds", raw.get("_nanoseconds")) or 0
        if not isinstance(seconds, int | float) or isinstance(seconds, bool):
            raise ValueError(f"timestamp mapping without seconds: {raw!r}")
        dt = _from_epoch(seconds, nanos)
    elif callable(getattr(raw, "to_datetime", None)):
        return to_instant(raw.to_datetime())
    else:
        raise ValueError(f"unsupported instant type: {type(raw).__name__}")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


_LEADING_SYMBOL_RE = re.compile(r"^[^\d+\-.]+")


def to_decimal(raw: Any, *, signed: bool = False) -> Decimal | None:
    """Convert a store amount into an exact ``Decimal`` (``None`` if blank)."""

    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError("boolean is not an amount")
    if isinstance(raw, Decimal):
        d = raw
    elif isinstance(raw, int):
        d = Decimal(raw)
    elif isinstance(raw, float):
        # str() keeps the shortest repr, so 0.1 stays 0.1 rather than its binary expansion
        d = Decimal(str(raw))
    elif isinstance(raw, str):
        s = raw.strip()
        if not s:
            return None
        s = _LEADING_SYMBOL_RE.sub("", s).replace(",", "").strip()
        try:
            d = Decimal(s)
        except InvalidOperation as exc:
            raise ValueError(f"invalid amount: {raw!r}") from exc
    else:
        raise ValueError(f"unsupported amount type: {type(raw).__name__}")

    if not d.is_finite():
        raise ValueError(f"invalid amount: {raw!r}")
    if not signed and d < 0:
        raise ValueError(f"amount must not be negative: {raw!r}")
    return d


Instant = Annotated[datetime, BeforeValidator(to_instant)]
OptionalInstant = Annotated[datetime | None, BeforeValidator(to_instant)]
Money = Annotated[Decimal, BeforeValidator(to_decimal)]
OptionalMoney = Annotated[Decimal | None, BeforeValidator(to_decimal)]
OptionalSignedMoney = Annotated[
    Decimal | None, BeforeValidator(lambda v: to_decimal(v, signed=True))
]


def utc_day(instant: datetime) -> date:
    """Return the UTC calendar date of ``instant``."""

    if instant.tzinfo is None:
        return instant.date()
    return instant.astimezone(UTC).date()


def format_month(month_year: str) -> str:
    """Render ``YYYY-MM`` as ``Apr 2024``."""

    return datetime.strptime(month_year, "%Y-%m").strftime("%b %Y")


def _status_is(status: str | None, expected: str) -> bool:
    # Missing status fields predate the status column and mean "normal".
    return (status or "").strip().lower() == expected


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SourceKind(StrEnum):
    CONTRIBUTION = "Contribution"
    PENALTY = "Penalty"
    EXPENSE = "Expense"
    RENTAL_INCOME = "RentalIncome"
    BANK_INTEREST = "BankInterest"
    BANK_CHARGE = "BankCharge"
    PROFESSIONAL_FEE = "ProfessionalFee"


class Lateness(StrEnum):
    ON_TIME = "on_time"
    LATE = "late"
    NOT_APPLICABLE = "not_applicable"

    @property
    def label(self) -> str:
        return {
            Lateness.ON_TIME: "On Time",
            Lateness.LATE: "Late",
            Lateness.NOT_APPLICABLE: "Voided",
        }[self]


# ---------------------------------------------------------------------------
# Source records (store documents)
# ---------------------------------------------------------------------------


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", str_strip_whitespace=True)

    id: str | None = None


class ContributionFlags(_Document):
    """Status and stored verdict, readable even when the timing fields are not."""

    status: str | None = None
    is_late: bool | None = Field(default=None, alias="isLate")

    @property
    def is_voided(self) -> bool:
        return _status_is(self.status, "voided")


class ContributionTiming(ContributionFlags):
    """The subset of a contribution that lateness classification reads."""

    months_covered: list[str] = Field(default_factory=list, alias="monthsCovered")
    date_paid: OptionalInstant = Field(default=None, alias="datePaid")

    @field_validator("months_covered", mode="before")
    @classmethod
    def _months_unique_sorted(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str) or not isinstance(v, Sequence):
            raise ValueError("monthsCovered must be a list of YYYY-MM strings")
        months: set[str] = set()
        for item in v:
            s = str(item).strip()
            if not MONTH_RE.match(s):
                raise ValueError(f"invalid month {item!r}; expected YYYY-MM")
            months.add(s)
        # YYYY-MM sorts chronologically as text
        return sorted(months)


class Contribution(ContributionTiming):
    user_id: str | None = Field(default=None, alias="userId")
    member_name: str | None = Field(default=None, alias="memberName")
    amount: Money
    penalty_paid_amount: OptionalMoney = Field(default=None, alias="penaltyPaidAmount")
    notes: str | None = None


class Penalty(_Document):
    user_id: str | None = Field(default=None, alias="userId")
    amount: Money
    date_issued: Instant = Field(alias="dateIssued")
    description: str | None = None


class Expense(_Document):
    date: Instant
    description: str = ""
    category: str | None = None
    total_amount: Money = Field(alias="totalAmount")
    vendor: str | None = None


class RentInvoice(_Document):
    tenant_name: str | None = Field(default=None, alias="tenantName")
    unit_number: str | None = Field(default=None, alias="unitNumber")
    invoice_number: str | None = Field(default=None, alias="invoiceNumber")
    invoice_date: Instant = Field(alias="invoiceDate")
    rent_amount: Money = Field(alias="rentAmount")
    status: str | None = None
    date_paid: OptionalInstant = Field(default=None, alias="datePaid")
    amount_paid: OptionalMoney = Field(default=None, alias="amountPaid")

    @property
    def is_paid(self) -> bool:
        return _status_is(self.status, "paid")


class BankBalanceSnapshot(_Document):
    month_year: str = Field(alias="monthYear")
    opening_balance: OptionalSignedMoney = Field(default=None, alias="openingBalance")
    closing_balance: OptionalSignedMoney = Field(default=None, alias="closingBalance")
    interest_earned: OptionalMoney = Field(default=None, alias="interestEarned")
    bank_charges: OptionalMoney = Field(default=None, alias="bankCharges")

    @field_validator("month_year")
    @classmethod
    def _month_format(cls, v: str) -> str:
        if not MONTH_RE.match(v):
            raise ValueError(f"invalid monthYear {v!r}; expected YYYY-MM")
        return v

    @property
    def month_start(self) -> datetime:
        year, month = (int(p) for p in self.month_year.split("-"))
        return datetime(year, month, 1, tzinfo=UTC)


class ProfessionalPayment(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", str_strip_whitespace=True)

    date: Instant
    amount_paid: Money = Field(alias="amountPaid")
    notes: str | None = None


class Professional(_Document):
    name: str = ""
    service_type: str | None = Field(default=None, alias="serviceType")
    total_agreed_charge: OptionalMoney = Field(default=None, alias="totalAgreedCharge")
    # Entries are validated one by one so a single bad payment does not hide the rest.
    payment_history: list[Any] = Field(default_factory=list, alias="paymentHistory")
    status: str | None = None


class Member(_Document):
    uid: str | None = None
    name: str | None = None
    email: str | None = None
    role: str | None = None
    tpin: str | None = None
    status: str | None = None
    penalty_balance: OptionalSignedMoney = Field(default=None, alias="penaltyBalance")

    @property
    def member_id(self) -> str | None:
        return self.uid or self.id

    @property
    def is_active(self) -> bool:
        return not _status_is(self.status, "inactive")


class Milestone(_Document):
    name: str = ""
    target_amount: OptionalMoney = Field(default=None, alias="targetAmount")
    status: str | None = None

    @property
    def is_completed(self) -> bool:
        return _status_is(self.status, "completed")


# ---------------------------------------------------------------------------
# Normalized ledger
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """One normalized ledger line derived from a source record.

    Exactly one of ``debit``/``credit`` is set unless ``excluded`` is true, in
    which case both are zero (the line is shown for audit only).
    ``source_voided`` records whether the originating record was voided.
    """

    date: datetime
    description: str
    source_kind: SourceKind
    source_id: str | None
    debit: Decimal | None = None
    credit: Decimal | None = None
    excluded: bool = False
    source_voided: bool = False

    def __post_init__(self) -> None:
        if self.excluded:
            if (self.debit or ZERO) != 0 or (self.credit or ZERO) != 0:
                raise ValueError("excluded transactions must not carry amounts")
        elif (self.debit is None) == (self.credit is None):
            raise ValueError("exactly one of debit/credit must be set")

    @property
    def net(self) -> Decimal:
        """``credit - debit``; zero for excluded lines."""

        if self.excluded:
            return ZERO
        return (self.credit or ZERO) - (self.debit or ZERO)

    @property
    def day(self) -> date:
        return utc_day(self.date)


@dataclass(frozen=True, slots=True)
class DateWindow:
    """Inclusive calendar-date window; ``None`` bounds are unbounded."""

    start: date | None = None
    end: date | None = None

    def __post_init__(self) -> None:
        for name in ("start", "end"):
            value = getattr(self, name)
            if isinstance(value, datetime):
                object.__setattr__(self, name, utc_day(value))
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError(f"window start {self.start} is after end {self.end}")

    @classmethod
    def for_year(cls, year: int) -> DateWindow:
        return cls(date(year, 1, 1), date(year, 12, 31))

    @classmethod
    def for_month(cls, year: int, month: int) -> DateWindow:
        first = date(year, month, 1)
        nxt = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        return cls(first, nxt - timedelta(days=1))

    def precedes(self, instant: datetime) -> bool:
        """True when ``instant`` falls strictly before the window start."""

        return self.start is not None and utc_day(instant) < self.start

    def contains(self, instant: datetime) -> bool:
        d = utc_day(instant)
        if self.start is not None and d < self.start:
            return False
        if self.end is not None and d > self.end:
            return False
        return True

    def contains_month(self, month_year: str) -> bool:
        # Bank snapshots are keyed by YYYY-MM and compared as text.
        if self.start is not None and month_year < self.start.strftime("%Y-%m"):
            return False
        if self.end is not None and month_year > self.end.strftime("%Y-%m"):
            return False
        return True

    @property
    def label(self) -> str:
        def fmt(d: date) -> str:
            return f"{d:%B} {d.day}, {d.year}"

        if self.start is None and self.end is None:
            return "All Time"
        if self.end is None:
            return f"From {fmt(self.start)}"  # type: ignore[arg-type]
        if self.start is None:
            return f"Up to {fmt(self.end)}"
        return f"{fmt(self.start)} - {fmt(self.end)}"


# A record as handed over by the store, or an already-validated model.
type SourceRecord = Mapping[str, Any] | BaseModel

# Snapshot attribute -> store collection name
SNAPSHOT_COLLECTIONS: Mapping[str, str] = {
    "contributions": "contributions",
    "penalties": "penalties",
    "expenses": "expenses",
    "rent_invoices": "rentInvoices",
    "bank_balances": "bankBalances",
    "professionals": "professionals",
}


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """Fully materialized source records for one computation."""

    contributions: Sequence[SourceRecord] = ()
    penalties: Sequence[SourceRecord] = ()
    expenses: Sequence[SourceRecord] = ()
    rent_invoices: Sequence[SourceRecord] = ()
    bank_balances: Sequence[SourceRecord] = ()
    professionals: Sequence[SourceRecord] = ()


__all__ = [
    "BankBalanceSnapshot",
    "Contribution",
    "ContributionFlags",
    "ContributionTiming",
    "DateWindow",
    "Expense",
    "Instant",
    "Lateness",
    "LedgerSnapshot",
    "MONTH_RE",
    "Member",
    "Milestone",
    "Money",
    "Penalty",
    "Professional",
    "ProfessionalPayment",
    "RentInvoice",
    "SNAPSHOT_COLLECTIONS",
    "SourceKind",
    "SourceRecord",
    "Transaction",
    "ZERO",
    "format_month",
    "to_decimal",
    "to_instant",
    "utc_day",
]
