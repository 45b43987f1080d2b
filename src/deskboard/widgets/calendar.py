from __future__ import annotations

import calendar as cal_grid
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
import os
from typing import Any

from dateutil import parser as dtparser
from icalendar import Calendar
import caldav

from ..config import Config
from ..errors import ConfigError, ParseError

name = "calendar"
title = "Calendar"
failure_message = "Failed to load calendar events"

EVENT_TYPES = {"meeting", "reminder", "task"}

def _expand(path: str) -> str:
    return os.path.expanduser(os.path.expandvars(path))

def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, datetime.min.time())

def _event_type(component: Any) -> str:
    cats = component.get("categories")
    if cats is None:
        return "event"
    for entry in cats if isinstance(cats, list) else [cats]:
        for cat in getattr(entry, "cats", []):
            if str(cat).lower() in EVENT_TYPES:
                return str(cat).lower()
    return "event"

def _parse_ics_events(ics_text: str) -> list[dict]:
    cal = Calendar.from_ical(ics_text)
    events = []
    for component in cal.walk():
        if component.name != "VEVENT":
            continue
        dtstart = component.get("dtstart")
        summary = component.get("summary")
        if not dtstart or not summary:
            continue
        events.append({
            "summary": str(summary),
            "start": _as_datetime(dtstart.dt),
            "all_day": not isinstance(dtstart.dt, datetime),
            "type": _event_type(component),
        })
    return events

def _load_from_ics(path: str) -> list[dict]:
    p = Path(_expand(path))
    if not p.exists():
        return []
    return _parse_ics_events(p.read_text(encoding="utf-8"))

def _load_from_caldav(url: str, username: str, password: str, start: datetime, end: datetime) -> list[dict]:
    client = caldav.DAVClient(url=url, username=username, password=password)
    calendars = client.principal().calendars()
    if not calendars:
        return []
    events = []
    for r in calendars[0].search(start=start, end=end, event=True, expand=True):
        events.extend(_parse_ics_events(r.data))
    return events

def _selected_date(params: dict, today: date) -> date:
    raw = params.get("date")
    if not raw:
        return today
    try:
        return dtparser.parse(str(raw)).date()
    except (ValueError, OverflowError) as e:
        raise ParseError(f"Invalid calendar date: {raw}") from e

def default_params(cfg: Config) -> dict:
    return {}

def load_events(cfg: Config, start: datetime, end: datetime) -> list[dict]:
    ccfg = cfg.section("calendar")
    source = str(ccfg.get("source", "none")).lower()
    if source == "none":
        return []
    if source == "ics":
        return _load_from_ics(str(ccfg.get("ics_path", "")))
    if source == "caldav":
        url = str(ccfg.get("caldav_url", "")).strip()
        user = str(ccfg.get("caldav_username", "")).strip()
        pw = str(ccfg.get("caldav_password", "")).strip()
        if not (url and user and pw):
            raise ConfigError("CalDAV configured but missing url/username/password")
        return _load_from_caldav(url, user, pw, start, end)
    raise ConfigError(f"Unknown calendar.source: {source}")

def collect(ctx, params: dict, force: bool = False) -> dict[str, Any]:
    now = ctx.now().astimezone()
    selected = _selected_date(params, now.date())

    first = selected.replace(day=1)
    last = first.replace(day=cal_grid.monthrange(first.year, first.month)[1])
    start = datetime.combine(first, datetime.min.time(), tzinfo=now.tzinfo)
    end = datetime.combine(last + timedelta(days=1), datetime.min.time(), tzinfo=now.tzinfo)

    month_events = []
    for e in load_events(ctx.config, start.astimezone(timezone.utc), end.astimezone(timezone.utc)):
        begins = e["start"]
        if begins.tzinfo is None:
            begins = begins.replace(tzinfo=now.tzinfo)
        begins = begins.astimezone(now.tzinfo)
        if start <= begins < end:
            month_events.append({**e, "start": begins})

    month_events.sort(key=lambda x: x["start"])
    return {
        "selected": selected.isoformat(),
        "events": [
            {
                "summary": e["summary"],
                "start": e["start"].isoformat(),
                "date": e["start"].date().isoformat(),
                "time": None if e["all_day"] else e["start"].strftime("%H:%M"),
                "type": e["type"],
            }
            for e in month_events
        ],
    }

def present(data: dict[str, Any], now: datetime, cfg: Config, params: dict | None = None) -> dict[str, Any]:
    selected = date.fromisoformat(data["selected"])
    busy = {e["date"] for e in data["events"]}
    weeks = cal_grid.Calendar(firstweekday=cal_grid.SUNDAY).monthdatescalendar(selected.year, selected.month)
    today = now.astimezone().date()
    return {
        "selected": data["selected"],
        "month": selected.strftime("%B %Y"),
        "weeks": [
            [
                {
                    "day": d.day,
                    "date": d.isoformat(),
                    "in_month": d.month == selected.month,
                    "today": d == today,
                    "has_event": d.isoformat() in busy,
                }
                for d in week
            ]
            for week in weeks
        ],
        "events": [e for e in data["events"] if e["date"] == data["selected"]],
    }
