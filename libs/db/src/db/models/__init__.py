"""Shared SQLAlchemy models registry for the workspace database.

Currently holds the document table used by ``group_ledger``'s record store.
"""

from .ledger import Base, GlDocument

__all__ = [
    "Base",
    "GlDocument",
]
