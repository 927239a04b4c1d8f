"""Contribution lifecycle (record, edit, void) and the contribution listing.

Every write goes through a :class:`~group_ledger.store.DocumentStore` and
leaves an entry in the ``auditLog`` collection. Contributions move from
``active`` to ``voided`` exactly once; a voided contribution is kept for
audit and can no longer be edited.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from .errors import (
    ContributionStateError,
    MalformedRecordError,
    RecordNotFoundError,
    SkippedRecord,
)
from .lateness import DEFAULT_DUE_DAY, classify, compute_is_late
from .logging_setup import get_logger
from .models import (
    MONTH_RE,
    ZERO,
    Contribution,
    ContributionFlags,
    DateWindow,
    Lateness,
    SourceRecord,
    format_month,
    to_instant,
)
from .normalizers import parse_record
from .store import DocumentStore, to_document

if TYPE_CHECKING:
    from .settings import GlobalSettings

CONTRIBUTIONS = "contributions"
AUDIT_LOG = "auditLog"

EDITABLE_FIELDS = frozenset({"amount", "monthsCovered", "penaltyPaidAmount", "notes", "datePaid"})

_logger = get_logger("group_ledger.contributions")

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class Actor:
    """Who performed a write, as recorded in the audit log."""

    user_id: str
    user_name: str


def write_audit_entry(
    store: DocumentStore,
    actor: Actor,
    action_type: str,
    details: Mapping[str, Any] | str,
    *,
    now: datetime | None = None,
) -> str:
    entry = {
        "timestamp": now or datetime.now(UTC),
        "userId": actor.user_id,
        "userName": actor.user_name,
        "actionType": action_type,
        "details": details if isinstance(details, str) else to_document(details),
    }
    return store.add(AUDIT_LOG, entry)


def _check_amount(amount: Decimal, settings: GlobalSettings | None) -> None:
    if amount <= 0:
        raise ValueError("contribution amount must be greater than zero")
    if settings is None:
        return
    if settings.contribution_min is not None and amount < settings.contribution_min:
        raise ValueError(f"contribution amount must be at least {settings.contribution_min}")
    if settings.contribution_max is not None and amount > settings.contribution_max:
        raise ValueError(f"contribution amount must be at most {settings.contribution_max}")


def _reload(store: DocumentStore, contribution_id: str) -> dict[str, Any]:
    doc = store.get(CONTRIBUTIONS, contribution_id)
    if doc is None:
        raise RecordNotFoundError(CONTRIBUTIONS, contribution_id)
    return doc


def _load(store: DocumentStore, contribution_id: str) -> tuple[dict[str, Any], Contribution]:
    doc = _reload(store, contribution_id)
    return doc, parse_record(Contribution, doc, collection=CONTRIBUTIONS)


def record_contribution(
    store: DocumentStore,
    *,
    user_id: str,
    member_name: str | None,
    amount: Decimal | int | float | str,
    months_covered: Sequence[str],
    date_paid: datetime | str,
    penalty_paid_amount: Decimal | int | float | str = 0,
    notes: str | None = None,
    actor: Actor,
    settings: GlobalSettings | None = None,
    due_day: int = DEFAULT_DUE_DAY,
) -> str:
    """Validate and store a new active contribution; return its id.

    ``isLate`` is computed from the covered months and the payment date.
    Raises ``ValueError`` for an invalid amount or an empty month list and
    :class:`~group_ledger.errors.MalformedRecordError` for unparseable fields.
    """

    if not months_covered:
        raise ValueError("at least one covered month is required")
    doc: dict[str, Any] = {
        "userId": user_id,
        "memberName": member_name,
        "amount": amount,
        "penaltyPaidAmount": penalty_paid_amount,
        "monthsCovered": list(months_covered),
        "datePaid": date_paid,
        "status": "active",
        "notes": notes,
    }
    c = parse_record(Contribution, doc, collection=CONTRIBUTIONS)
    if c.date_paid is None:
        raise ValueError("datePaid is required")
    _check_amount(c.amount, settings)

    doc.update(
        amount=c.amount,
        penaltyPaidAmount=c.penalty_paid_amount or ZERO,
        monthsCovered=c.months_covered,
        datePaid=c.date_paid,
        isLate=compute_is_late(c, due_day=due_day),
    )
    contribution_id = store.add(CONTRIBUTIONS, doc)
    write_audit_entry(
        store,
        actor,
        "CONTRIBUTION_RECORDED",
        {
            "contributionId": contribution_id,
            "memberId": user_id,
            "amount": c.amount,
            "monthsCovered": c.months_covered,
        },
    )
    _logger.info(
        "contributions:recorded id=%s member=%s amount=%s is_late=%s",
        contribution_id,
        user_id,
        c.amount,
        doc["isLate"],
    )
    return contribution_id


def edit_contribution(
    store: DocumentStore,
    contribution_id: str,
    changes: Mapping[str, Any],
    *,
    actor: Actor,
    settings: GlobalSettings | None = None,
    due_day: int = DEFAULT_DUE_DAY,
) -> dict[str, Any]:
    """Apply ``changes`` to an active contribution and recompute ``isLate``.

    Only :data:`EDITABLE_FIELDS` may change. Returns the updated document.
    """

    unknown = sorted(set(changes) - EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"fields not editable: {', '.join(unknown)}")
    if not changes:
        raise ValueError("no changes given")

    doc, current = _load(store, contribution_id)
    if current.is_voided:
        raise ContributionStateError(
            f"contribution {contribution_id} is voided and cannot be edited"
        )

    # The stored flag is recomputed, so it must not feed back into validation
    merged = {k: v for k, v in doc.items() if k != "isLate"} | dict(changes)
    updated = parse_record(Contribution, merged, collection=CONTRIBUTIONS)
    if not updated.months_covered:
        raise ValueError("at least one covered month is required")
    if updated.date_paid is None:
        raise ValueError("datePaid is required")
    _check_amount(updated.amount, settings)

    # Store the parsed forms rather than whatever shape the caller sent
    parsed = {
        "amount": updated.amount,
        "monthsCovered": updated.months_covered,
        "penaltyPaidAmount": updated.penalty_paid_amount or ZERO,
        "notes": updated.notes,
        "datePaid": updated.date_paid,
    }
    applied = {k: parsed[k] for k in changes}
    is_late = compute_is_late(updated, due_day=due_day)
    store.update(
        CONTRIBUTIONS,
        contribution_id,
        {**applied, "isLate": is_late, "lastUpdatedAt": datetime.now(UTC)},
    )
    write_audit_entry(
        store,
        actor,
        "CONTRIBUTION_EDITED",
        {"contributionId": contribution_id, "changes": applied, "isLate": is_late},
    )
    _logger.info(
        "contributions:edited id=%s fields=%s is_late=%s",
        contribution_id,
        ",".join(sorted(changes)),
        is_late,
    )
    return _reload(store, contribution_id)


def void_contribution(
    store: DocumentStore,
    contribution_id: str,
    *,
    actor: Actor,
    reason: str | None = None,
) -> dict[str, Any]:
    """Mark a contribution voided. Voiding is terminal; a second void raises."""

    _doc, current = _load(store, contribution_id)
    if current.is_voided:
        raise ContributionStateError(f"contribution {contribution_id} is already voided")

    store.update(
        CONTRIBUTIONS,
        contribution_id,
        {
            "status": "voided",
            "voidedAt": datetime.now(UTC),
            "voidReason": reason,
            "isLate": None,
        },
    )
    write_audit_entry(
        store,
        actor,
        "CONTRIBUTION_VOIDED",
        {"contributionId": contribution_id, "amount": current.amount, "reason": reason},
    )
    _logger.info("contributions:voided id=%s reason=%r", contribution_id, reason)
    return _reload(store, contribution_id)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


def _without_bad_timing(record: SourceRecord) -> dict[str, Any]:
    payload = dict(record.model_dump(by_alias=True) if isinstance(record, BaseModel) else record)
    months = payload.get("monthsCovered")
    if isinstance(months, Sequence) and not isinstance(months, str):
        payload["monthsCovered"] = [m for m in months if MONTH_RE.match(str(m).strip())]
    else:
        payload["monthsCovered"] = []
    try:
        to_instant(payload.get("datePaid"))
    except ValueError:
        payload["datePaid"] = None
    return payload


def _parse_listed(record: SourceRecord) -> Contribution:
    """Parse a listing record. Voided records survive unusable months or payment dates."""

    try:
        return parse_record(Contribution, record, collection=CONTRIBUTIONS)
    except MalformedRecordError:
        flags = parse_record(ContributionFlags, record, collection=CONTRIBUTIONS)
        if not flags.is_voided:
            raise
    return parse_record(Contribution, _without_bad_timing(record), collection=CONTRIBUTIONS)


@dataclass(frozen=True, slots=True)
class ContributionDetail:
    contribution_id: str | None
    user_id: str | None
    member_name: str
    date_paid: datetime | None
    months: tuple[str, ...]
    amount: Decimal
    penalty_paid_amount: Decimal
    lateness: Lateness

    @property
    def is_voided(self) -> bool:
        return self.lateness is Lateness.NOT_APPLICABLE


@dataclass(frozen=True, slots=True)
class ContributionDetails:
    """Audit listing of contributions; voided lines are listed but not totalled."""

    lines: tuple[ContributionDetail, ...]
    total_amount: Decimal
    total_penalty_paid: Decimal
    voided_count: int
    skipped: tuple[SkippedRecord, ...] = ()


def list_contribution_details(
    contributions: Iterable[SourceRecord],
    *,
    window: DateWindow | None = None,
    lateness: Lateness | None = None,
    due_day: int = DEFAULT_DUE_DAY,
) -> ContributionDetails:
    """Classify, filter and total contributions for the details listing.

    Lines are ordered newest payment first. With a ``window`` only
    contributions paid inside it are listed.
    """

    lines: list[ContributionDetail] = []
    skipped: list[SkippedRecord] = []
    for record in contributions:
        try:
            c = _parse_listed(record)
            verdict = classify(c, due_day=due_day)
        except MalformedRecordError as e:
            _logger.warning(
                "contributions:skipped_record doc_id=%s reason=%s", e.doc_id, e.reason
            )
            skipped.append(SkippedRecord.from_error(e))
            continue
        if window is not None and (c.date_paid is None or not window.contains(c.date_paid)):
            continue
        if lateness is not None and verdict is not lateness:
            continue
        lines.append(
            ContributionDetail(
                contribution_id=c.id,
                user_id=c.user_id,
                member_name=c.member_name or c.user_id or "Unknown member",
                date_paid=c.date_paid,
                months=tuple(format_month(m) for m in c.months_covered),
                amount=c.amount,
                penalty_paid_amount=c.penalty_paid_amount or ZERO,
                lateness=verdict,
            )
        )

    # Newest first; undated lines go last
    lines.sort(key=lambda d: (d.date_paid is not None, d.date_paid or _EPOCH), reverse=True)
    counted = [d for d in lines if not d.is_voided]
    return ContributionDetails(
        lines=tuple(lines),
        total_amount=sum((d.amount for d in counted), ZERO),
        total_penalty_paid=sum((d.penalty_paid_amount for d in counted), ZERO),
        voided_count=len(lines) - len(counted),
        skipped=tuple(skipped),
    )


__all__ = [
    "AUDIT_LOG",
    "Actor",
    "ContributionDetail",
    "ContributionDetails",
    "EDITABLE_FIELDS",
    "edit_contribution",
    "list_contribution_details",
    "record_contribution",
    "void_contribution",
    "write_audit_entry",
]
