"""Polling state machine shared by every widget.

A ``RefreshController`` owns one ``RefreshState`` and moves it through fetch
cycles started on activation, by a periodic timer and on explicit request.
Each cycle is tagged with a generation number; a cycle whose generation is no
longer current (a newer cycle started, or the controller was stopped) drops
its result instead of writing it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, TypeVar

from .errors import ConfigError, DashboardError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INTERVAL = 5 * 60
GENERIC_FAILURE = "Failed to load data. Please try again later."

Fetch = Callable[[dict, bool], Awaitable[T]]

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

@dataclass
class RefreshState(Generic[T]):
    data: T | None = None
    loading: bool = False
    error: str | None = None
    last_updated: datetime | None = None

class RefreshController(Generic[T]):
    def __init__(
        self,
        name: str,
        fetch: Fetch,
        interval: float = DEFAULT_INTERVAL,
        params: dict | None = None,
        failure_message: str = GENERIC_FAILURE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.name = name
        self.interval = interval
        self.params: dict = dict(params or {})
        self.failure_message = failure_message
        self._fetch = fetch
        self._clock = clock
        self._state: RefreshState[T] = RefreshState()
        self._generation = 0
        self._timer: asyncio.Task | None = None
        self._cycles: set[asyncio.Task] = set()
        self._disposed = False

    @property
    def state(self) -> RefreshState[T]:
        """A copy of the current state; callers cannot mutate ours."""
        return replace(self._state)

    @property
    def busy(self) -> bool:
        return any(not t.done() for t in self._cycles)

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._disposed

    def start(self, params: dict | None = None) -> asyncio.Task:
        """Run a first cycle now and arm the periodic timer."""
        if self._disposed:
            raise RuntimeError(f"{self.name}: controller already stopped")
        if self._timer is not None:
            raise RuntimeError(f"{self.name}: controller already started")
        if params is not None:
            self.params = dict(params)
        first = self._launch(force=False)
        try:
            self._timer = asyncio.create_task(self._tick(), name=f"{self.name}-timer")
        except BaseException:
            first.cancel()
            self._disposed = True
            raise
        return first

    def refresh_now(self, params: dict | None = None) -> asyncio.Task:
        """Start a cycle outside the schedule; the timer keeps its rhythm."""
        if self._disposed:
            raise RuntimeError(f"{self.name}: controller already stopped")
        if params:
            self.params = {**self.params, **params}
        return self._launch(force=True)

    def update_params(self, params: dict) -> None:
        """Merge params for later cycles without starting one."""
        self.params = {**self.params, **params}

    async def run_once(self) -> RefreshState[T]:
        """One scheduled-style cycle without arming the timer."""
        await self._launch(force=False)
        return self.state

    async def stop(self) -> None:
        self._disposed = True
        pending = list(self._cycles)
        if self._timer is not None:
            pending.append(self._timer)
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def __aenter__(self) -> "RefreshController[T]":
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    def _launch(self, force: bool) -> asyncio.Task:
        self._generation += 1
        task = asyncio.create_task(
            self._cycle(self._generation, force),
            name=f"{self.name}-cycle-{self._generation}",
        )
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)
        return task

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.busy:
                logger.debug("%s: cycle still in flight, skipping scheduled refresh", self.name)
                continue
            self._launch(force=False)

    def _current(self, generation: int) -> bool:
        return not self._disposed and generation == self._generation

    async def _cycle(self, generation: int, force: bool) -> None:
        self._state.loading = True
        self._state.error = None
        params = dict(self.params)
        try:
            data = await self._fetch(params, force)
        except ConfigError as exc:
            logger.warning("%s: %s", self.name, exc)
            self._fail(generation, str(exc))
            return
        except DashboardError as exc:
            logger.warning("%s: fetch failed: %s", self.name, exc)
            self._fail(generation, str(exc) or self.failure_message)
            return
        except Exception:
            logger.exception("%s: unexpected error during fetch", self.name)
            self._fail(generation, self.failure_message)
            return

        if not self._current(generation):
            logger.debug("%s: dropping result of superseded cycle %d", self.name, generation)
            return
        self._state.data = data
        self._state.last_updated = self._clock()
        self._state.loading = False

    def _fail(self, generation: int, message: str) -> None:
        if not self._current(generation):
            return
        self._state.error = message
        self._state.loading = False

__all__ = ["DEFAULT_INTERVAL", "RefreshController", "RefreshState", "utcnow"]
