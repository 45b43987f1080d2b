"""Pure helpers that turn fetched data into what the page shows.

Nothing here is cached: the dashboard recomputes these on every snapshot so
relative labels ("2 hours ago", "Tomorrow") stay current between fetches.
"""

from __future__ import annotations

import math
from datetime import datetime, tzinfo
from typing import Any, Iterable

from dateutil import parser as dtparser
from dateutil import tz

DAY_SECONDS = 24 * 60 * 60

ICON_RULES = [
    (("clear", "sun"), "sun"),
    (("rain",), "rain"),
    (("drizzle",), "drizzle"),
    (("snow",), "snow"),
    (("cloud",), "cloud"),
]
DEFAULT_ICON = "cloud"

PRIORITIES = {
    1: ("Urgent", "destructive"),
    2: ("High", "warning"),
    3: ("Normal", "default"),
}

def js_round(value: float) -> int:
    """Round half up, the way the browser widgets always did."""
    return int(math.floor(value + 0.5))

def to_number(value: Any, default: float = 0.0) -> float:
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return default if math.isnan(number) else number

def parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = dtparser.isoparse(str(value))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz.tzlocal())
    return parsed

def format_last_updated(now: datetime, last_updated: datetime | None) -> str | None:
    if last_updated is None:
        return None
    minutes = int((now - last_updated).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes == 1:
        return "1 minute ago"
    if minutes < 60:
        return f"{minutes} minutes ago"
    return last_updated.astimezone().strftime("%H:%M")

def hours_ago(now: datetime, published: Any) -> str:
    then = parse_timestamp(published)
    if then is None:
        return "Just now"
    hours = int((now - then).total_seconds() // 3600)
    if hours < 1:
        return "Just now"
    if hours == 1:
        return "1 hour ago"
    return f"{hours} hours ago"

def due_date_band(due: Any, now: datetime) -> dict[str, str] | None:
    """Urgency badge for a task due date, or None when there is no due date."""
    when = parse_timestamp(due)
    if when is None:
        return None
    days = math.ceil((when - now).total_seconds() / DAY_SECONDS)
    if days < 0:
        return {"text": "Overdue", "tone": "destructive"}
    if days == 0:
        return {"text": "Today", "tone": "warning"}
    if days == 1:
        return {"text": "Tomorrow", "tone": "default"}
    if days <= 7:
        return {"text": f"{days} days", "tone": "default"}
    return {"text": when.astimezone().strftime("%b %d, %Y"), "tone": "secondary"}

def priority_label(priority: int | None) -> dict[str, str] | None:
    if priority is None:
        return None
    text, tone = PRIORITIES.get(priority, ("Low", "secondary"))
    return {"text": text, "tone": tone}

def status_tone(status: str) -> str:
    lowered = status.lower()
    if "complete" in lowered or "done" in lowered or "progress" in lowered:
        return "default"
    return "secondary"

def condition_icon(condition: str | None) -> str:
    lowered = (condition or "").lower()
    for needles, icon in ICON_RULES:
        if any(n in lowered for n in needles):
            return icon
    return DEFAULT_ICON

def select_daily_forecast(
    items: Iterable[dict[str, Any]],
    zone: tzinfo | None = None,
    limit: int = 5,
) -> list[dict[str, Any]]:
    """Pick one midday reading per calendar day from a 3-hourly series.

    The first entry whose local hour falls in 11..14 represents its day; days
    are kept in the order first seen, up to ``limit``.
    """
    zone = zone or tz.tzlocal()
    days: list[dict[str, Any]] = []
    seen = set()
    for item in items:
        if len(days) >= limit:
            break
        try:
            when = datetime.fromtimestamp(int(item["dt"]), tz=zone)
        except (KeyError, TypeError, ValueError, OverflowError):
            continue
        if when.date() in seen or not 11 <= when.hour <= 14:
            continue
        weather = (item.get("weather") or [{}])[0]
        condition = str(weather.get("main") or "")
        days.append({
            "day": when.strftime("%a"),
            "date": when.date().isoformat(),
            "temp": js_round(to_number((item.get("main") or {}).get("temp"))),
            "condition": condition,
            "icon": condition_icon(condition),
        })
        seen.add(when.date())
    return days

__all__ = [
    "condition_icon",
    "due_date_band",
    "format_last_updated",
    "hours_ago",
    "js_round",
    "parse_timestamp",
    "priority_label",
    "select_daily_forecast",
    "status_tone",
    "to_number",
]
