from __future__ import annotations

import json
from typing import Any, List, Optional

import pytest

from conti_wizard.config import DEFAULT_BASE_URL, DEFAULT_MODEL, ContiConfig


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(body)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        return json.loads(self.text)


class FakeSession:
    """Replays canned responses (or raises canned exceptions) in order."""

    def __init__(self, *responses: Any) -> None:
        self.responses: List[Any] = list(responses)
        self.calls: List[dict] = []

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def gemini_body(text: str, finish_reason: str = "STOP") -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": finish_reason}]}


@pytest.fixture
def cfg() -> ContiConfig:
    return ContiConfig(
        gemini_api_key="",
        model=DEFAULT_MODEL,
        base_url=DEFAULT_BASE_URL,
        request_timeout_sec=5,
        key_file="",
    )


@pytest.fixture
def sleeps() -> List[float]:
    return []
