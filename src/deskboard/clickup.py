"""Server-side relay to the ClickUp API.

The personal API token stays in this process. Callers get the tasks of the
first team the token belongs to, reshaped to the fields the dashboard shows,
or a single generic error.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import requests

from .errors import ConfigError, NetworkError, UpstreamHttpError

logger = logging.getLogger(__name__)

CLICKUP_API = "https://api.clickup.com/api/v2"
TOKEN_MISSING = "ClickUp API token not configured"
FETCH_FAILED = "Failed to fetch tasks from ClickUp"

def _iso_from_epoch_ms(value: Any) -> str | None:
    if not value:
        return None
    try:
        moment = datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.warning("Ignoring unparseable due_date %r", value)
        return None
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

def _priority(raw: Any) -> int | None:
    if not isinstance(raw, dict):
        return None
    try:
        return int(raw.get("priority"))
    except (TypeError, ValueError):
        return None

def _ref(raw: Any) -> dict[str, Any] | None:
    if not raw:
        return None
    return {"id": raw.get("id"), "name": raw.get("name")}

def reshape_task(task: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": task.get("id"),
        "name": task.get("name"),
        "status": (task.get("status") or {}).get("status"),
        "dueDate": _iso_from_epoch_ms(task.get("due_date")),
        "priority": _priority(task.get("priority")),
        "list": _ref(task.get("list")) or {"id": None, "name": None},
        "folder": _ref(task.get("folder")),
        "space": _ref(task.get("space")),
        "url": task.get("url"),
    }

class ClickUpClient:
    """Minimal client for the two ClickUp endpoints the dashboard needs."""

    def __init__(self, token: str, base_url: str = CLICKUP_API, timeout: int = 15) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, path: str, params: dict[str, Any] | None = None) -> requests.Response:
        try:
            return requests.get(
                f"{self.base_url}{path}",
                params=params,
                headers={"Authorization": self.token, "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise NetworkError(f"GET {path} failed: {e}") from e

    def get_team_ids(self) -> list[str]:
        r = self._get("/user")
        if not r.ok:
            logger.error("ClickUp user API error: %s %s", r.status_code, r.text)
            raise UpstreamHttpError(
                f"Failed to fetch user: {r.status_code} - {r.text}", status=r.status_code, body=r.text
            )
        user = r.json().get("user") or {}
        return [str(team["id"]) for team in user.get("teams") or []]

    def get_team_tasks(self, team_id: str) -> list[dict[str, Any]]:
        r = self._get(f"/team/{team_id}/task", params={"subtasks": "true"})
        if not r.ok:
            raise UpstreamHttpError("Failed to fetch tasks", status=r.status_code, body=r.text)
        return r.json().get("tasks") or []

def fetch_team_tasks(token: str, base_url: str = CLICKUP_API) -> list[dict[str, Any]]:
    if not token:
        raise ConfigError(TOKEN_MISSING)
    client = ClickUpClient(token, base_url=base_url)
    team_ids = client.get_team_ids()
    if not team_ids:
        return []
    return [reshape_task(task) for task in client.get_team_tasks(team_ids[0])]

def tasks_response(token: str, base_url: str = CLICKUP_API) -> tuple[int, dict[str, Any]]:
    """Run the relay and map its outcome to an HTTP status and JSON body."""
    try:
        tasks = fetch_team_tasks(token, base_url=base_url)
    except ConfigError as e:
        logger.error("%s", e)
        return 500, {"error": TOKEN_MISSING}
    except Exception:
        logger.exception("ClickUp API error")
        return 500, {"error": FETCH_FAILED}
    return 200, {"tasks": tasks}

__all__ = ["ClickUpClient", "fetch_team_tasks", "reshape_task", "tasks_response"]
