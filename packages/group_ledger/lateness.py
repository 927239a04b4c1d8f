"""Payment-timeliness classification for contributions.

Rule, in priority order:

1. voided → ``NOT_APPLICABLE``;
2. an explicit ``isLate`` flag is trusted verbatim;
3. no covered months or no ``datePaid`` → ``ON_TIME``;
4. otherwise the due date is day ``due_day`` (7 by default) of the month after
   the earliest covered month, and a payment on a later calendar date is
   ``LATE``.

The same function backs list badges, the "late only" filter and the stored
``isLate`` flag, so all of them agree.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import date

from .errors import MalformedRecordError
from .logging_setup import get_logger
from .models import ContributionFlags, ContributionTiming, Lateness, SourceRecord, utc_day
from .normalizers import parse_record

DEFAULT_DUE_DAY = 7

_logger = get_logger("group_ledger.lateness")


def due_date_for(first_month: str, *, due_day: int = DEFAULT_DUE_DAY) -> date:
    """Return the due date for a contribution whose earliest period is ``first_month``."""

    if not 1 <= due_day <= 28:
        raise ValueError("due_day must be between 1 and 28")
    year, month = (int(p) for p in first_month.split("-"))
    if month == 12:
        return date(year + 1, 1, due_day)
    return date(year, month + 1, due_day)


def _timing(contribution: SourceRecord) -> ContributionTiming:
    return parse_record(ContributionTiming, contribution, collection="contributions")


def compute_is_late(contribution: SourceRecord, *, due_day: int = DEFAULT_DUE_DAY) -> bool:
    """Apply the due-date rule only, ignoring status and any stored flag."""

    c = _timing(contribution)
    if not c.months_covered or c.date_paid is None:
        return False
    due = due_date_for(c.months_covered[0], due_day=due_day)
    # Calendar comparison: year, then month, then day
    return utc_day(c.date_paid) > due


def classify(contribution: SourceRecord, *, due_day: int = DEFAULT_DUE_DAY) -> Lateness:
    """Classify ``contribution`` as on time, late, or not applicable (voided).

    Accepts a validated :class:`~group_ledger.models.Contribution` or a raw
    store mapping. Raises :class:`~group_ledger.errors.MalformedRecordError`
    only when the due-date rule has to read timing fields that are unusable;
    voided or flagged records classify whatever their months and payment date.
    """

    flags = parse_record(ContributionFlags, contribution, collection="contributions")
    if flags.is_voided:
        return Lateness.NOT_APPLICABLE
    if flags.is_late is not None:
        return Lateness.LATE if flags.is_late else Lateness.ON_TIME
    return Lateness.LATE if compute_is_late(contribution, due_day=due_day) else Lateness.ON_TIME


def filter_by_lateness(
    contributions: Iterable[SourceRecord],
    lateness: Lateness,
    *,
    due_day: int = DEFAULT_DUE_DAY,
) -> Iterator[SourceRecord]:
    """Yield the contributions whose classification equals ``lateness``.

    Malformed records are skipped with a warning instead of failing the list.
    """

    for item in contributions:
        try:
            verdict = classify(item, due_day=due_day)
        except MalformedRecordError as e:
            _logger.warning(
                "lateness:skipped_record doc_id=%s reason=%s",
                e.doc_id,
                e.reason,
            )
            continue
        if verdict is lateness:
            yield item


__all__ = [
    "DEFAULT_DUE_DAY",
    "classify",
    "compute_is_late",
    "due_date_for",
    "filter_by_lateness",
]
