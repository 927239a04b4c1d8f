"""Pytest configuration for test isolation.

Two pieces of process-wide state can leak between tests:

- the package logger, which ``configure_logging`` (run by every CLI
  invocation) detaches from the root logger, hiding records from ``caplog``;
- the cached SQLAlchemy engine in ``db.client``, bound to one database URL.

Autouse fixtures reset both around every test. The strict void-state check is
also pinned to its default so a developer's environment cannot change results.
"""

from __future__ import annotations

import pytest

from db.client import dispose_engine
from group_ledger.logging_setup import reset_logging


@pytest.fixture(autouse=True)
def _reset_logging(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("GROUP_LEDGER_LOG_LEVEL", raising=False)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _default_invariants(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GROUP_LEDGER_STRICT_INVARIANTS", raising=False)


@pytest.fixture(autouse=True)
def _dispose_engine():
    yield
    dispose_engine()
