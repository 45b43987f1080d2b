from __future__ import annotations

from datetime import datetime
from typing import Any

from .. import clickup
from ..config import Config
from ..display import due_date_band, priority_label, status_tone
from ..errors import UpstreamHttpError
from .base import WidgetContext, get_json

name = "tasks"
title = "ClickUp Tasks"
failure_message = "Failed to load tasks from ClickUp"

def default_params(cfg: Config) -> dict:
    return {}

def collect(ctx: WidgetContext, params: dict, force: bool = False) -> list[dict[str, Any]]:
    cfg = ctx.config
    # The widget never sees the token when the relay runs in another process.
    if cfg.tasks_proxy_url:
        body = get_json(cfg.tasks_proxy_url, error_message=failure_message)
    else:
        status, body = clickup.tasks_response(cfg.clickup_token, base_url=cfg.clickup_base_url)
        if status != 200:
            raise UpstreamHttpError(failure_message, status=status, body=str(body.get("error", "")))
    tasks = body.get("tasks") if isinstance(body, dict) else None
    return list(tasks or [])

def present(
    data: list[dict[str, Any]], now: datetime, cfg: Config, params: dict | None = None
) -> dict[str, Any]:
    tasks = [
        {
            **t,
            "due": due_date_band(t.get("dueDate"), now),
            "priority_label": priority_label(t.get("priority")),
            "status_tone": status_tone(t.get("status") or ""),
        }
        for t in data
    ]
    count = len(tasks)
    return {
        "tasks": tasks,
        "summary": f"{count} active {'task' if count == 1 else 'tasks'}",
    }
