from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: gl_documents
# ---------------------------


class GlDocument(Base):
    """One document of a named collection (contributions, expenses, ...).

    The engine treats the database as a document store: every record keeps its
    camelCase payload unchanged in ``data`` and is addressed by
    ``(collection, doc_id)``. Query predicates beyond the collection name are
    evaluated in the service layer.
    """

    __tablename__ = "gl_documents"

    # SQLite only autoincrements INTEGER PRIMARY KEY columns.
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True
    )
    collection: Mapped[str] = mapped_column(String, nullable=False)
    doc_id: Mapped[str] = mapped_column(String, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_gl_documents_collection_doc"),
        Index("ix_gl_documents_collection", "collection"),
    )


__all__ = [
    "Base",
    "GlDocument",
]
