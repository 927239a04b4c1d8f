"""Test helpers to stub the OpenAI Responses client used by ai_summary.py.

The stub replays a scripted sequence of outcomes: a string becomes the
``output_text`` of a response, an exception instance is raised from
``responses.create``. Each call's kwargs are recorded for assertions.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any


class StatusError(Exception):
    """Carries an HTTP ``status_code`` like the SDK's ``APIStatusError``."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


def summary_json(text: str) -> str:
    return json.dumps({"summary": text})


class OpenAIStub:
    """Minimal stub matching the ``openai.OpenAI`` shape used by ``ai_summary``."""

    def __init__(self, outcomes: Sequence[str | BaseException]) -> None:
        self._outcomes = list(outcomes)
        self._calls: list[dict[str, Any]] = []

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs):
                self._outer._calls.append(kwargs)
                outcome = self._outer._outcomes.pop(0)
                if isinstance(outcome, BaseException):
                    raise outcome

                class _Resp:
                    output_text: str

                resp = _Resp()
                resp.output_text = outcome
                return resp

        self.responses = _Responses(self)

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self._calls
