"""Role-tailored natural-language summary of the dashboard metrics.

Public API:
    - :func:`summarize_for_role`

The OpenAI client is created lazily on first call (``OPENAI_API_KEY`` is read
by the SDK); nothing happens at import time.
"""

from __future__ import annotations

import json
import random
import time
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from openai import OpenAI
from openai.types.responses import ResponseTextConfigParam

from .dashboard import DashboardMetrics
from .logging_setup import get_logger

# Retry and model settings

_MAX_ATTEMPTS: int = 3
_BACKOFF_SCHEDULE_SEC: tuple[float, ...] = (0.5, 2.0)
_JITTER_PCT: float = 0.20

_MODEL: str = "gpt-5"

_logger = get_logger("group_ledger.ai_summary")


class Role(StrEnum):
    ADMIN = "Admin"
    MEMBER = "Member"
    FINANCE_PROFESSIONAL = "Finance Professional"


_ROLE_FOCUS: Mapping[Role, str] = {
    Role.ADMIN: (
        "Focus on overall financial health, project progress, and potential issues like "
        "overdue contributions. Highlight key metrics and trends."
    ),
    Role.MEMBER: (
        "Focus on contributions, project progress, and the overall financial status of "
        "the investment."
    ),
    Role.FINANCE_PROFESSIONAL: (
        "Provide a detailed summary, including all data points. Analyze financial "
        "performance, identify trends, and suggest areas for improvement."
    ),
}

_TEXT_CFG: ResponseTextConfigParam = {
    "format": {
        "type": "json_schema",
        "name": "role_summary",
        "schema": {
            "type": "object",
            "properties": {"summary": {"type": "string"}},
            "required": ["summary"],
            "additionalProperties": False,
        },
        "strict": True,
    }
}


def build_instructions(role: Role, *, currency_symbol: str = "MK") -> str:
    return (
        "You are an expert financial analyst. Generate a concise financial data summary "
        f"tailored to the user's role.\n\nRole: {role.value}\n\n"
        f"{_ROLE_FOCUS[role]}\n\n"
        f"Amounts are in {currency_symbol}. Return JSON with a single 'summary' string."
    )


def build_user_content(metrics: DashboardMetrics) -> str:
    return (
        "Here's the financial data:\n"
        f"- Total Funds: {metrics.total_funds}\n"
        f"- Total Expenditures (Current Month): {metrics.total_expenditures}\n"
        f"- Total Contributions (Current Month): {metrics.total_contributions}\n"
        f"- Project Completion: {metrics.project_completion_percentage}%\n"
        f"- Overdue Contributions Count: {metrics.overdue_contributions_count}\n"
    )


def _extract_summary(resp: Any) -> str:
    text: str | None = getattr(resp, "output_text", None)
    if not text or not isinstance(text, str):
        raise ValueError("summary response carried no output_text")
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError("summary response was not JSON matching the summary schema") from e
    summary = decoded.get("summary") if isinstance(decoded, Mapping) else None
    if not isinstance(summary, str) or not summary.strip():
        raise ValueError("Model returned an empty summary")
    return summary.strip()


def _create_client() -> OpenAI:
    return OpenAI()


def _is_retryable(exc: BaseException) -> bool:
    """Return True only for HTTP 429 and 5xx errors."""

    sc = getattr(exc, "status_code", None)
    return isinstance(sc, int) and (sc == 429 or 500 <= sc < 600)


def _sleep_backoff(attempt_no: int) -> None:
    if attempt_no - 1 < len(_BACKOFF_SCHEDULE_SEC):
        base = _BACKOFF_SCHEDULE_SEC[attempt_no - 1]
    else:
        base = _BACKOFF_SCHEDULE_SEC[-1]
    jitter = base * _JITTER_PCT
    delay = base + random.uniform(-jitter, jitter)
    time.sleep(max(0.0, delay))


def summarize_for_role(
    role: Role | str,
    metrics: DashboardMetrics,
    *,
    client: Any | None = None,
    currency_symbol: str = "MK",
) -> str:
    """Return a short summary of ``metrics`` written for ``role``.

    HTTP 429 and 5xx failures are retried with backoff; output that is not the
    requested JSON (or an empty summary) raises ``ValueError`` immediately.
    """

    role = Role(role)
    if client is None:
        client = _create_client()
    instructions = build_instructions(role, currency_symbol=currency_symbol)
    user_content = build_user_content(metrics)

    attempt = 1
    while True:
        t0 = time.perf_counter()
        try:
            resp = client.responses.create(
                model=_MODEL,
                instructions=instructions,
                input=user_content,
                text=_TEXT_CFG,
            )
            summary = _extract_summary(resp)
            _logger.info(
                "ai_summary:done role=%s latency_ms=%.2f",
                role.value,
                (time.perf_counter() - t0) * 1000.0,
            )
            return summary
        except Exception as e:  # noqa: BLE001
            dt_ms = (time.perf_counter() - t0) * 1000.0
            if attempt >= _MAX_ATTEMPTS or not _is_retryable(e):
                _logger.error(
                    "ai_summary:failed_terminal role=%s latency_ms=%.2f error=%s",
                    role.value,
                    dt_ms,
                    e.__class__.__name__,
                )
                if isinstance(e, ValueError):
                    raise
                raise RuntimeError(f"summarize_for_role failed for role {role.value}: {e}") from e
            _logger.warning(
                "ai_summary:retry role=%s latency_ms=%.2f error=%s attempt=%d",
                role.value,
                dt_ms,
                e.__class__.__name__,
                attempt,
            )
            _sleep_backoff(attempt)
            attempt += 1


__all__ = ["Role", "build_instructions", "build_user_content", "summarize_for_role"]
