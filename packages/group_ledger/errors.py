"""Exception types and the skipped-record value used across the engine."""

from __future__ import annotations

from dataclasses import dataclass


class LedgerError(Exception):
    """Base class for errors raised by ``group_ledger``."""


class MalformedRecordError(LedgerError, ValueError):
    """A source record lacks a field the engine cannot default."""

    def __init__(self, collection: str, doc_id: str | None, reason: str) -> None:
        super().__init__(f"malformed {collection} record {doc_id or '<no id>'}: {reason}")
        self.collection = collection
        self.doc_id = doc_id
        self.reason = reason


class InconsistentVoidStateError(LedgerError, RuntimeError):
    """A voided contribution reached a statement as a countable transaction."""


class ContributionStateError(LedgerError):
    """A lifecycle operation is not allowed in the contribution's current state."""


class RecordNotFoundError(LedgerError, LookupError):
    """A document requested by id does not exist in the store."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"{collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


@dataclass(frozen=True, slots=True)
class SkippedRecord:
    """A record left out of a computation because it was malformed."""

    collection: str
    doc_id: str | None
    reason: str

    @classmethod
    def from_error(cls, err: MalformedRecordError) -> SkippedRecord:
        return cls(collection=err.collection, doc_id=err.doc_id, reason=err.reason)


__all__ = [
    "ContributionStateError",
    "InconsistentVoidStateError",
    "LedgerError",
    "MalformedRecordError",
    "RecordNotFoundError",
    "SkippedRecord",
]
