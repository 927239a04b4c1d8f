"""Logging configuration for ``group_ledger``.

Engine modules log through ``get_logger("group_ledger.<module>")`` with
structured ``event key=value`` messages (``normalize:skipped_record
collection=expenses doc_id=e1 ...``) and never attach handlers themselves.
Until an entrypoint calls :func:`configure_logging` the package logger only
carries a ``NullHandler``, so embedding applications see nothing unless they
configure logging.

The CLI configures logging once at startup; the level comes from
``--log-level``, then ``GROUP_LEDGER_LOG_LEVEL``, then ``INFO``.
:func:`reset_logging` undoes the configuration (tests use it between runs).
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "group_ledger"
_LEVEL_ENV = "GROUP_LEDGER_LOG_LEVEL"
_DEFAULT_FMT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(_LEVEL_ENV)
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        # Numeric strings or level names (INFO/DEBUG/...)
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelName(name)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Attach a single ``StreamHandler`` to the package logger.

    Runs once per process; later calls are no-ops until :func:`reset_logging`.

    Parameters
    ----------
    level:
        ``int`` or level name. ``None`` falls back to ``GROUP_LEDGER_LOG_LEVEL``
        and then ``INFO``; unknown names also resolve to ``INFO``.
    fmt:
        Format string, defaulting to ``"%(asctime)s %(name)s %(levelname)s
        %(message)s"``.
    stream:
        Destination stream; ``sys.stderr`` at call time when omitted, so
        report JSON on stdout stays clean.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FMT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    # Records stop here; the root logger would print them twice.
    logger.propagate = False

    _CONFIGURED = True


def reset_logging() -> None:
    """Remove handlers added by :func:`configure_logging` and restore propagation."""

    global _CONFIGURED
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    _CONFIGURED = False


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``; the package logger gets a ``NullHandler`` if bare."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "reset_logging"]
