# ruff: noqa: I001
"""Record store access for ``group_ledger``.

The engine only ever *reads* materialized records; it reaches the document
store through the small :class:`RecordSource` protocol. Two implementations
ship here:

- :class:`InMemoryRecordSource` holds collections in process (tests, JSON
  exports loaded with :func:`load_snapshot_file`);
- :class:`SqlRecordSource` keeps documents in the shared ``gl_documents``
  table owned by ``libs/db`` (one JSON payload per ``(collection, doc_id)``).

Fetch errors propagate unchanged; there are no retries at this layer.
"""

from __future__ import annotations

import copy
import json
import uuid
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import func, select

from db.client import session_scope
from db.models.ledger import GlDocument
from .errors import RecordNotFoundError
from .logging_setup import get_logger
from .models import SNAPSHOT_COLLECTIONS, LedgerSnapshot

_logger = get_logger("group_ledger.store")

type Where = Mapping[str, Any]


@runtime_checkable
class RecordSource(Protocol):
    """Read access to store collections."""

    def fetch(self, collection: str, where: Where | None = None) -> list[dict[str, Any]]: ...

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None: ...


@runtime_checkable
class DocumentStore(RecordSource, Protocol):
    """A :class:`RecordSource` that also accepts writes."""

    def add(self, collection: str, data: Mapping[str, Any], doc_id: str | None = None) -> str: ...

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> None: ...


def to_document(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-compatible copy of ``data`` (decimals as strings, instants as ISO)."""

    def conv(v: Any) -> Any:
        if isinstance(v, Decimal):
            return str(v)
        if isinstance(v, datetime | date):
            return v.isoformat()
        if isinstance(v, Enum):
            return v.value
        if isinstance(v, Mapping):
            return {str(k): conv(x) for k, x in v.items()}
        if isinstance(v, list | tuple):
            return [conv(x) for x in v]
        return v

    return {str(k): conv(v) for k, v in data.items()}


def _matches(doc: Mapping[str, Any], where: Where | None) -> bool:
    if not where:
        return True
    return all(doc.get(k) == v for k, v in where.items())


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class InMemoryRecordSource:
    """Dictionary-backed store; documents are copied on the way in and out."""

    def __init__(self, collections: Mapping[str, Iterable[Mapping[str, Any]]] | None = None):
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        for name, docs in (collections or {}).items():
            for doc in docs:
                self.add(name, doc, doc_id=doc.get("id"))

    def fetch(self, collection: str, where: Where | None = None) -> list[dict[str, Any]]:
        docs = self._data.get(collection, {})
        return [copy.deepcopy(d) for d in docs.values() if _matches(d, where)]

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        doc = self._data.get(collection, {}).get(doc_id)
        return None if doc is None else copy.deepcopy(doc)

    def add(self, collection: str, data: Mapping[str, Any], doc_id: str | None = None) -> str:
        doc_id = str(doc_id) if doc_id is not None else _new_id()
        doc = to_document(data)
        doc["id"] = doc_id
        self._data.setdefault(collection, {})[doc_id] = doc
        return doc_id

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> None:
        doc = self._data.get(collection, {}).get(doc_id)
        if doc is None:
            raise RecordNotFoundError(collection, doc_id)
        doc.update(to_document(changes))
        doc["id"] = doc_id

    def collections(self) -> list[str]:
        return sorted(self._data)


def load_snapshot_file(path: Path | str) -> InMemoryRecordSource:
    """Load a JSON export shaped ``{collection: [doc, ...]}`` or ``{collection: {id: doc}}``."""

    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, Mapping):
        raise ValueError(f"{p}: expected a JSON object keyed by collection name")

    collections: dict[str, list[dict[str, Any]]] = {}
    for name, docs in raw.items():
        if isinstance(docs, Mapping):
            # Keyed export: the key is the document id
            collections[name] = [{**doc, "id": doc.get("id", key)} for key, doc in docs.items()]
        elif isinstance(docs, list):
            collections[name] = list(docs)
        else:
            raise ValueError(f"{p}: collection {name!r} must be a list or an object")
    _logger.info(
        "store:snapshot_loaded path=%s collections=%d documents=%d",
        p,
        len(collections),
        sum(len(v) for v in collections.values()),
    )
    return InMemoryRecordSource(collections)


def dump_snapshot_file(source: InMemoryRecordSource, path: Path | str) -> None:
    """Write every collection of ``source`` back out as ``{collection: [doc, ...]}``."""

    p = Path(path)
    payload = {name: source.fetch(name) for name in source.collections()}
    with p.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
        f.write("\n")


# ---------------------------------------------------------------------------
# SQL-backed store
# ---------------------------------------------------------------------------


class SqlRecordSource:
    """Document store on the ``gl_documents`` table.

    ``where`` filters are equality matches on top-level document fields and
    are applied after loading a collection, which keeps the query portable
    across SQLite and Postgres JSON types.
    """

    def __init__(self, database_url: str | None = None) -> None:
        self.database_url = database_url

    @staticmethod
    def _as_doc(row: GlDocument) -> dict[str, Any]:
        doc = dict(row.data or {})
        doc["id"] = row.doc_id
        return doc

    def fetch(self, collection: str, where: Where | None = None) -> list[dict[str, Any]]:
        with session_scope(database_url=self.database_url) as session:
            rows = session.scalars(
                select(GlDocument)
                .where(GlDocument.collection == collection)
                .order_by(GlDocument.id)
            ).all()
            docs = [self._as_doc(r) for r in rows]
        return [d for d in docs if _matches(d, where)]

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with session_scope(database_url=self.database_url) as session:
            row = session.scalars(
                select(GlDocument).where(
                    GlDocument.collection == collection, GlDocument.doc_id == doc_id
                )
            ).one_or_none()
            return None if row is None else self._as_doc(row)

    def add(self, collection: str, data: Mapping[str, Any], doc_id: str | None = None) -> str:
        doc_id = str(doc_id) if doc_id is not None else _new_id()
        payload = to_document(data)
        payload.pop("id", None)
        with session_scope(database_url=self.database_url) as session:
            session.add(GlDocument(collection=collection, doc_id=doc_id, data=payload))
        return doc_id

    def put(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Insert or replace a document wholesale."""

        payload = to_document(data)
        payload.pop("id", None)
        with session_scope(database_url=self.database_url) as session:
            row = session.scalars(
                select(GlDocument).where(
                    GlDocument.collection == collection, GlDocument.doc_id == doc_id
                )
            ).one_or_none()
            if row is None:
                session.add(GlDocument(collection=collection, doc_id=doc_id, data=payload))
            else:
                row.data = payload
                row.updated_at = func.now()

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> None:
        with session_scope(database_url=self.database_url) as session:
            row = session.scalars(
                select(GlDocument).where(
                    GlDocument.collection == collection, GlDocument.doc_id == doc_id
                )
            ).one_or_none()
            if row is None:
                raise RecordNotFoundError(collection, doc_id)
            merged = dict(row.data or {})
            merged.update(to_document(changes))
            merged.pop("id", None)
            # Reassign so the JSON column is flagged dirty
            row.data = merged
            row.updated_at = func.now()


def import_collections(
    store: SqlRecordSource, source: RecordSource, collections: Iterable[str]
) -> int:
    """Copy every document of ``collections`` from ``source`` into ``store``."""

    count = 0
    for name in collections:
        for doc in source.fetch(name):
            store.put(name, str(doc["id"]), doc)
            count += 1
    _logger.info("store:imported documents=%d", count)
    return count


def fetch_ledger_snapshot(source: RecordSource, *, member_id: str | None = None) -> LedgerSnapshot:
    """Materialize the ledger source collections into a :class:`LedgerSnapshot`.

    With ``member_id`` only that member's contributions and penalties are read;
    organization-level sources are left empty since they are not member
    activity.
    """

    if member_id is not None:
        where = {"userId": member_id}
        return LedgerSnapshot(
            contributions=source.fetch("contributions", where),
            penalties=source.fetch("penalties", where),
        )
    return LedgerSnapshot(
        **{attr: source.fetch(name) for attr, name in SNAPSHOT_COLLECTIONS.items()}
    )


__all__ = [
    "DocumentStore",
    "InMemoryRecordSource",
    "RecordSource",
    "SqlRecordSource",
    "dump_snapshot_file",
    "fetch_ledger_snapshot",
    "import_collections",
    "load_snapshot_file",
    "to_document",
]
