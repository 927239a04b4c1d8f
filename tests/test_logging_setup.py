from __future__ import annotations

import io
import logging

from group_ledger.logging_setup import configure_logging, get_logger, reset_logging


def test_configure_logging_runs_once_and_writes_structured_lines() -> None:
    buf = io.StringIO()
    configure_logging("DEBUG", fmt="%(name)s %(message)s", stream=buf)
    configure_logging("ERROR", stream=io.StringIO())

    get_logger("group_ledger.normalizers").debug("normalize:done transactions=%d", 3)

    assert buf.getvalue() == "group_ledger.normalizers normalize:done transactions=3\n"
    assert logging.getLogger("group_ledger").propagate is False


def test_level_falls_back_to_env_then_info(monkeypatch) -> None:
    monkeypatch.setenv("GROUP_LEDGER_LOG_LEVEL", "warning")
    configure_logging(stream=io.StringIO())
    assert logging.getLogger("group_ledger").level == logging.WARNING

    reset_logging()
    monkeypatch.setenv("GROUP_LEDGER_LOG_LEVEL", "chatty")
    configure_logging(stream=io.StringIO())
    assert logging.getLogger("group_ledger").level == logging.INFO


def test_reset_restores_propagation() -> None:
    configure_logging(stream=io.StringIO())
    reset_logging()
    logger = logging.getLogger("group_ledger")
    assert logger.propagate is True and logger.handlers == []
