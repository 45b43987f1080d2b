from __future__ import annotations

from typing import Any, Callable, Optional

import pytest
import requests

from deskboard.cache import MemoryStore, TimedCache
from deskboard.config import ENV_KEYS, Config
from deskboard.widgets.base import WidgetContext


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, text: Optional[str] = None) -> None:
        self.payload = payload
        self.status_code = status_code
        self.text = text if text is not None else str(payload)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeGet:
    """Stands in for requests.get and records every call."""

    def __init__(self, handler: Callable[[str, dict], Any]) -> None:
        self.handler = handler
        self.calls: list[dict[str, Any]] = []

    def __call__(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "headers": dict(headers or {})})
        result = self.handler(url, dict(params or {}))
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture(autouse=True)
def _no_env_secrets(monkeypatch):
    for var in ENV_KEYS.values():
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def respond():
    return FakeResponse


@pytest.fixture
def fake_get(monkeypatch):
    def install(handler: Callable[[str, dict], Any]) -> FakeGet:
        getter = FakeGet(handler)
        monkeypatch.setattr(requests, "get", getter)
        return getter

    return install


@pytest.fixture
def no_network(fake_get):
    def refuse(url, params):
        raise AssertionError(f"unexpected network call to {url}")

    return fake_get(refuse)


@pytest.fixture
def make_ctx():
    def build(raw: dict, **kwargs: Any) -> WidgetContext:
        kwargs.setdefault("cache", TimedCache(MemoryStore()))
        kwargs.setdefault("sleep", lambda seconds: None)
        return WidgetContext(config=Config(raw=raw), **kwargs)

    return build
