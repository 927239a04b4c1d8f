"""Engine and session helpers shared by the document store and migrations.

One engine is cached per process and bound to a single database URL (the
``database_url`` argument or ``DATABASE_URL``). Callers open short
transactions with :func:`session_scope`:

    from db.client import session_scope

    with session_scope(database_url=url) as s:
        s.scalars(select(GlDocument)).all()

:func:`dispose_engine` drops the cached engine so a later call can bind a
different URL (tests bind one SQLite file each).
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

_ENGINE: Engine | None = None
_SESSION_MAKER: sessionmaker[Session] | None = None
_BOUND_URL: str | None = None


def _resolve_url(database_url: str | None) -> str:
    url = database_url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("no database URL: pass database_url or set DATABASE_URL")
    return url


def _engine_options(url: str) -> dict[str, Any]:
    if make_url(url).get_backend_name() == "sqlite":
        # Snapshot imports and CLI reads may share one file across threads.
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the process engine, creating it on first use.

    Asking for a different URL once an engine exists is an error; call
    :func:`dispose_engine` first.
    """

    global _ENGINE, _SESSION_MAKER, _BOUND_URL
    url = _resolve_url(database_url)
    if _ENGINE is not None:
        if url != _BOUND_URL:
            raise RuntimeError(
                f"engine already bound to {_BOUND_URL!r}; dispose_engine() before binding {url!r}"
            )
        return _ENGINE

    _ENGINE = create_engine(url, **_engine_options(url))
    _SESSION_MAKER = sessionmaker(bind=_ENGINE, expire_on_commit=False)
    _BOUND_URL = url
    return _ENGINE


def dispose_engine() -> None:
    """Close pooled connections and forget the bound URL."""

    global _ENGINE, _SESSION_MAKER, _BOUND_URL
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE, _SESSION_MAKER, _BOUND_URL = None, None, None


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on any error."""

    get_engine(database_url=database_url)
    assert _SESSION_MAKER is not None
    session = _SESSION_MAKER()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = ["dispose_engine", "get_engine", "session_scope"]
