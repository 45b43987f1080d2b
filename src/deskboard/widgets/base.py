from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Protocol

import requests

from ..cache import MemoryStore, TimedCache
from ..config import Config
from ..errors import NetworkError, ParseError, UpstreamHttpError
from ..refresh import utcnow

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10

@dataclass(frozen=True)
class WidgetResult:
    name: str
    title: str
    data: Any = None
    loading: bool = False
    error: str | None = None
    last_updated: str | None = None
    updated_text: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def stale(self) -> bool:
        """Old data is still around underneath an error."""
        return self.error is not None and self.data is not None

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "ok": self.ok,
            "stale": self.stale,
            "loading": self.loading,
            "error": self.error,
            "last_updated": self.last_updated,
            "updated_text": self.updated_text,
            "data": self.data,
        }

class Throttle:
    """Serialises calls to one rate-limited provider across worker threads.

    Hold it for a whole batch of calls. ``remaining`` tells the next holder
    how long to wait so that its first call keeps the spacing from the last
    call of the previous holder.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._last_call: float | None = None

    def __enter__(self) -> "Throttle":
        self._lock.acquire()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._lock.release()

    def remaining(self, interval: float) -> float:
        if self._last_call is None:
            return 0.0
        return max(0.0, interval - (self._clock() - self._last_call))

    def mark(self) -> None:
        self._last_call = self._clock()

@dataclass(frozen=True)
class WidgetContext:
    """What a widget's collect() may reach besides its own params.

    ``stopping`` is set when the dashboard shuts down; long collects check it
    between provider calls. ``sleep`` replaces the interruptible wait in tests.
    """
    config: Config
    cache: TimedCache = field(default_factory=lambda: TimedCache(MemoryStore()))
    sleep: Callable[[float], None] | None = None
    now: Callable[[], datetime] = utcnow
    stopping: threading.Event = field(default_factory=threading.Event)
    throttle: Throttle = field(default_factory=Throttle)

    def wait(self, seconds: float) -> bool:
        """Pause between provider calls; True once the dashboard is stopping."""
        if seconds <= 0:
            return self.stopping.is_set()
        if self.sleep is None:
            return self.stopping.wait(seconds)
        self.sleep(seconds)
        return self.stopping.is_set()

class Widget(Protocol):
    name: str
    title: str
    failure_message: str

    def default_params(self, cfg: Config) -> dict:
        ...

    def collect(self, ctx: WidgetContext, params: dict, force: bool = False) -> Any:
        ...

    def present(self, data: Any, now: datetime, cfg: Config, params: dict | None = None) -> Any:
        ...

def get_json(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    error_message: str,
    status_messages: dict[int, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Any:
    """GET a JSON document, translating every failure into a DashboardError.

    ``error_message`` is what the user sees; the underlying detail only goes
    to the log. ``status_messages`` overrides the message for specific
    HTTP statuses.
    """
    try:
        r = requests.get(url, params=params, headers=headers, timeout=timeout)
    except requests.RequestException as e:
        logger.warning("GET %s failed: %s", url, e)
        raise NetworkError(error_message) from e

    if not r.ok:
        body = r.text[:200]
        logger.warning("GET %s returned HTTP %s: %s", url, r.status_code, body)
        message = (status_messages or {}).get(r.status_code, error_message)
        raise UpstreamHttpError(message, status=r.status_code, body=body)

    try:
        return r.json()
    except ValueError as e:
        logger.warning("GET %s returned a non-JSON body", url)
        raise ParseError(error_message) from e
