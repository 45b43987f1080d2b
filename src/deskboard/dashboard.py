from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping

from .cache import JsonFileStore, TimedCache
from .config import Config
from .display import format_last_updated
from .refresh import RefreshController, utcnow
from .widgets import REGISTRY
from .widgets.base import Widget, WidgetContext, WidgetResult

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class DashboardData:
    results: list[WidgetResult]

    def as_dict(self) -> dict[str, Any]:
        return {"results": [r.as_dict() for r in self.results]}

class Dashboard:
    """One refresh controller per configured widget, started and stopped together."""

    def __init__(
        self,
        cfg: Config,
        registry: Mapping[str, Widget] = REGISTRY,
        cache: TimedCache | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        if cache is None:
            cache = TimedCache(JsonFileStore(cfg.cache_path), ttl=cfg.stocks_cache_ttl)
        self.config = cfg
        self.clock = clock
        self.order = cfg.widget_order
        self.ctx = WidgetContext(config=cfg, cache=cache, sleep=sleep, now=clock)
        self.widgets: dict[str, Widget] = {}
        self.controllers: dict[str, RefreshController] = {}

        for name in self.order:
            mod = registry.get(name)
            if mod is None:
                logger.warning("Unknown widget %r in dashboard.widgets", name)
                continue
            self.widgets[name] = mod
            self.controllers[name] = RefreshController(
                name,
                self._fetcher(mod),
                interval=cfg.refresh_interval,
                params=mod.default_params(cfg),
                failure_message=mod.failure_message,
                clock=clock,
            )

    def _fetcher(self, mod: Widget):
        async def fetch(params: dict, force: bool) -> Any:
            return await asyncio.to_thread(mod.collect, self.ctx, params, force)
        return fetch

    async def start(self) -> None:
        try:
            for controller in self.controllers.values():
                controller.start()
        except BaseException:
            await self.stop()
            raise
        logger.info("Dashboard started with widgets: %s", ", ".join(self.controllers))

    async def stop(self) -> None:
        # Worker threads outlive task cancellation; this tells them to quit.
        self.ctx.stopping.set()
        await asyncio.gather(*(c.stop() for c in self.controllers.values()))

    async def __aenter__(self) -> "Dashboard":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    def refresh(self, name: str, params: dict | None = None) -> asyncio.Task:
        """Manual refresh of one widget; KeyError for names not on the dashboard."""
        return self.controllers[name].refresh_now(params)

    def toggle_mark(self, name: str, key: str) -> bool:
        """Flip ``key`` in the widget's mark list (stock favorites, news bookmarks).

        KeyError for names not on the dashboard, ValueError for widgets with
        nothing to mark. Returns whether ``key`` is now marked. No fetch runs.
        """
        mod = self.widgets[name]
        param = getattr(mod, "mark_param", None)
        if param is None:
            raise ValueError(f"{name} has nothing to mark")
        controller = self.controllers[name]
        marks = list(controller.params.get(param) or [])
        marked = key not in marks
        if marked:
            marks.append(key)
        else:
            marks.remove(key)
        controller.update_params({param: marks})
        return marked

    def result(self, name: str, now: datetime | None = None) -> WidgetResult:
        mod = self.widgets.get(name)
        if mod is None:
            return WidgetResult(name=name, title=name, error="Unknown widget")
        now = now or self.clock()
        controller = self.controllers[name]
        state = controller.state
        data, error = None, state.error
        if state.data is not None:
            try:
                data = mod.present(state.data, now, self.config, dict(controller.params))
            except Exception:
                logger.exception("%s: could not present data", name)
                error = mod.failure_message
        return WidgetResult(
            name=name,
            title=mod.title,
            data=data,
            loading=state.loading,
            error=error,
            last_updated=state.last_updated.isoformat() if state.last_updated else None,
            updated_text=format_last_updated(now, state.last_updated),
        )

    def snapshot(self, now: datetime | None = None) -> DashboardData:
        now = now or self.clock()
        return DashboardData(results=[self.result(name, now) for name in self.order])

async def collect_all(cfg: Config, **kwargs: Any) -> DashboardData:
    """Run a single cycle of every widget, without timers."""
    dash = Dashboard(cfg, **kwargs)
    try:
        await asyncio.gather(*(c.run_once() for c in dash.controllers.values()))
    finally:
        await dash.stop()
    return dash.snapshot()
