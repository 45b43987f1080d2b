"""
FastAPI application serving the dashboard.

Routes:
- ``GET /``                               the dashboard page
- ``GET /health``                         liveness probe
- ``GET /api/widgets``                    every widget's current state
- ``GET /api/widgets/{name}``             one widget's state
- ``POST /api/widgets/{name}/refresh``    manual refresh, optional JSON params
- ``POST /api/widgets/{name}/marks/{key}`` toggle a stock favorite or news bookmark
- ``GET /api/clickup/tasks``              task relay holding the ClickUp token

Run with:
    deskboard --config config.yaml
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, HTTPException
from fastapi.responses import HTMLResponse, JSONResponse

from . import clickup
from .config import Config
from .dashboard import Dashboard
from .page import render_page

logger = logging.getLogger(__name__)

def create_app(cfg: Config, dashboard: Dashboard | None = None) -> FastAPI:
    dashboard = dashboard or Dashboard(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Widget timers live exactly as long as the application."""
        async with dashboard:
            yield
        logger.info("Dashboard stopped")

    app = FastAPI(title="Deskboard", lifespan=lifespan)
    app.state.dashboard = dashboard

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        return render_page(cfg, dashboard.snapshot().as_dict())

    @app.get("/api/widgets")
    async def widgets() -> dict[str, Any]:
        return dashboard.snapshot().as_dict()

    @app.get("/api/widgets/{name}")
    async def widget(name: str) -> dict[str, Any]:
        if name not in dashboard.order:
            raise HTTPException(status_code=404, detail=f"Unknown widget: {name}")
        return dashboard.result(name).as_dict()

    @app.post("/api/widgets/{name}/refresh", status_code=202)
    async def refresh(name: str, params: dict[str, Any] | None = Body(default=None)) -> dict[str, Any]:
        try:
            dashboard.refresh(name, params)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown widget: {name}")
        return {"refreshing": name}

    @app.post("/api/widgets/{name}/marks/{key}")
    async def toggle_mark(name: str, key: str) -> dict[str, Any]:
        try:
            marked = dashboard.toggle_mark(name, key)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown widget: {name}")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"name": name, "key": key, "marked": marked}

    @app.get("/api/clickup/tasks")
    def clickup_tasks() -> JSONResponse:
        status, body = clickup.tasks_response(cfg.clickup_token, base_url=cfg.clickup_base_url)
        return JSONResponse(body, status_code=status)

    return app
