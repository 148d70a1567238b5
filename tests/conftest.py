import json
from typing import Any, Dict, List, Optional

import pytest

from seo_orchestrator.config import API_KEY_ENV_VARS
from seo_orchestrator.providers.base import BaseProvider
from seo_orchestrator.transport import TransportResponse


class FakeClock:
    """Monotonic clock that only moves when told to. Also usable as sleep."""

    def __init__(self, now: float = 1000.0):
        self.now = now
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeTransport:
    """
    Transport that replays queued outcomes.

    Each outcome is a dict (sent back as a 200 JSON body), a TransportResponse,
    or an exception to raise. The last outcome repeats once the queue runs dry.
    """

    def __init__(self, *outcomes: Any):
        self.outcomes = list(outcomes)
        self.calls: List[Dict[str, Any]] = []

    def execute(self, url, method, headers, body, timeout):
        self.calls.append({"url": url, "method": method, "headers": headers, "body": body, "timeout": timeout})
        if not self.outcomes:
            raise AssertionError(f"unexpected request to {url}")
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, TransportResponse):
            return outcome
        return TransportResponse(200, json.dumps(outcome))


class FakeProvider(BaseProvider):
    """Provider returning a canned answer or raising a canned error."""

    def __init__(self, name: str, result: Any = "ok", error: Optional[Exception] = None, available: bool = True):
        self._name = name
        self.result = result
        self.error = error
        self.available = available
        self.calls: List[str] = []
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    def _answer(self, operation: str) -> Any:
        self.calls.append(operation)
        if self.error is not None:
            raise self.error
        return self.result

    def generate(self, prompt, options=None):
        return self._answer("generate")

    def generate_title(self, analysis, options=None):
        return self._answer("title")

    def generate_description(self, analysis, options=None):
        return self._answer("description")

    def generate_keywords(self, analysis, options=None):
        return self._answer("keywords")

    def is_available(self) -> bool:
        return self.available

    def validate_config(self, config) -> bool:
        return True

    def close(self) -> None:
        self.closed = True


class FailingStore:
    """Key-value store whose every operation raises."""

    def __init__(self):
        self.calls: List[str] = []

    def _fail(self, operation: str) -> None:
        self.calls.append(operation)
        raise RuntimeError(f"store {operation} failed")

    def get(self, key, default=None):
        self._fail("get")

    def set(self, key, value, ttl=None):
        self._fail("set")

    def has(self, key):
        self._fail("has")

    def delete(self, key):
        self._fail("delete")

    def clear(self):
        self._fail("clear")


def chat_response(text: str) -> Dict[str, Any]:
    return {"choices": [{"message": {"content": text}}]}


def error_response(status: int, message: str = "boom") -> TransportResponse:
    return TransportResponse(status, json.dumps({"error": {"message": message}}))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real API keys and SEO_AI_* settings out of tests."""
    for var in API_KEY_ENV_VARS.values():
        monkeypatch.delenv(var, raising=False)
    for var in ("DEFAULT_BACKEND", "FALLBACK_CHAIN", "FALLBACK_ENABLED", "RATE_LIMITING", "RATE_LIMIT",
                "BLOCK_ON_LIMIT", "CACHE_ENABLED", "CACHE_TTL", "MAX_RETRIES", "TIMEOUT", "WAIT_FOR_TOKEN"):
        monkeypatch.delenv("SEO_AI_" + var, raising=False)


@pytest.fixture
def clock():
    return FakeClock()
