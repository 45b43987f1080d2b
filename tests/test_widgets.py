import asyncio
from datetime import datetime, timezone

import pytest
import requests

from deskboard.cache import MemoryStore, TimedCache
from deskboard.config import Config
from deskboard.dashboard import collect_all
from deskboard.errors import ConfigError, NetworkError, UpstreamHttpError
from deskboard.widgets import calendar, news, tasks, weather

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def _memory_cache():
    return TimedCache(MemoryStore())


WEATHER_PAYLOAD = {
    "name": "Bethesda",
    "main": {"temp": 21.5, "feels_like": 20.4, "humidity": 40, "pressure": 1012},
    "weather": [{"main": "Clear", "description": "clear sky", "icon": "01d"}],
    "wind": {"speed": 3.6},
}


def test_weather_maps_current_conditions(make_ctx, fake_get, respond):
    getter = fake_get(lambda url, params: respond(WEATHER_PAYLOAD))
    ctx = make_ctx({"weather": {"api_key": "k"}})

    data = weather.collect(ctx, weather.default_params(ctx.config))

    assert getter.calls[0]["params"] == {"q": "Bethesda", "appid": "k", "units": "metric"}
    assert data["location"] == "Bethesda"
    assert data["humidity"] == 40
    assert data["icon_url"] == "https://openweathermap.org/img/wn/01d@4x.png"

    shown = weather.present(data, NOW, ctx.config)
    assert shown["temp"] == 22
    assert shown["feels_like"] == 20
    assert shown["icon"] == "sun"


def test_weather_city_not_found(make_ctx, fake_get, respond):
    fake_get(lambda url, params: respond({"message": "city not found"}, status_code=404))
    with pytest.raises(UpstreamHttpError, match="City not found. Please try another city.") as exc:
        weather.collect(make_ctx({"weather": {"api_key": "k"}}), {"city": "Atlantis"})
    assert exc.value.status == 404


def test_weather_network_error(make_ctx, fake_get):
    fake_get(lambda url, params: requests.Timeout("slow"))
    with pytest.raises(NetworkError):
        weather.collect(make_ctx({"weather": {"api_key": "k"}}), {})


def test_weather_key_from_environment(make_ctx, fake_get, respond, monkeypatch):
    monkeypatch.setenv("OPEN_WEATHER_MAP_API", "from-env")
    getter = fake_get(lambda url, params: respond(WEATHER_PAYLOAD))
    weather.collect(make_ctx({}), {})
    assert getter.calls[0]["params"]["appid"] == "from-env"


@pytest.mark.parametrize(
    "widget, message",
    [
        ("weather", "Weather API key not found"),
        ("forecast", "Weather API key not found"),
        ("news", "News API key not found"),
        ("stocks", "Alpha Vantage API key not configured"),
    ],
)
def test_missing_key_shows_message_without_network(no_network, widget, message):
    cfg = Config(raw={"dashboard": {"widgets": [widget]}})
    dash = asyncio.run(collect_all(cfg, sleep=lambda seconds: None, cache=_memory_cache()))

    result = dash.results[0]
    assert result.error == message
    assert result.loading is False
    assert no_network.calls == []


def test_news_fills_defaults(make_ctx, fake_get, respond):
    payload = {
        "articles": [
            {
                "title": "Rates hold",
                "description": "Central bank pauses",
                "url": "https://example.com/a",
                "urlToImage": "https://example.com/a.png",
                "source": {"name": "Wire"},
                "publishedAt": "2024-05-10T09:00:00Z",
            },
            {"title": None, "source": None},
        ]
    }
    getter = fake_get(lambda url, params: respond(payload))
    ctx = make_ctx({"news": {"api_key": "n"}}, now=lambda: NOW)

    articles = news.collect(ctx, {})

    assert getter.calls[0]["params"] == {"country": "us", "pageSize": 5, "apiKey": "n"}
    assert articles[0]["source"] == "Wire"
    assert articles[1] == {
        "id": "2",
        "title": "No title",
        "description": "No description available",
        "url": "#",
        "image_url": news.PLACEHOLDER_IMAGE,
        "source": "Unknown",
        "published_at": NOW.isoformat(),
        "category": "News",
    }

    shown = news.present(articles, NOW, ctx.config)
    assert [a["time_ago"] for a in shown] == ["3 hours ago", "Just now"]
    assert [a["bookmarked"] for a in shown] == [False, False]

    saved = news.present(articles, NOW, ctx.config, {"bookmarks": ["2"]})
    assert [a["bookmarked"] for a in saved] == [False, True]
    assert news.default_params(ctx.config) == {"bookmarks": []}


def test_news_bad_payload(make_ctx, fake_get, respond):
    fake_get(lambda url, params: respond({"status": "error"}))
    with pytest.raises(Exception, match="Failed to load news"):
        news.collect(make_ctx({"news": {"api_key": "n"}}), {})


def test_tasks_reads_relay_in_process(make_ctx, monkeypatch):
    relayed = [{"id": "t1", "name": "Ship", "status": "to do", "dueDate": None, "priority": 2}]
    seen = {}

    def fake_response(token, base_url):
        seen["token"] = token
        return 200, {"tasks": relayed}

    monkeypatch.setattr(tasks.clickup, "tasks_response", fake_response)
    data = tasks.collect(make_ctx({"tasks": {"api_token": "pk_1"}}), {})

    assert data == relayed
    assert seen["token"] == "pk_1"


def test_tasks_relay_failure_is_generic(make_ctx, monkeypatch):
    monkeypatch.setattr(tasks.clickup, "tasks_response", lambda token, base_url: (500, {"error": "x"}))
    with pytest.raises(UpstreamHttpError, match="Failed to load tasks from ClickUp"):
        tasks.collect(make_ctx({}), {})


def test_tasks_through_http_proxy(make_ctx, fake_get, respond):
    getter = fake_get(lambda url, params: respond({"tasks": []}))
    ctx = make_ctx({"tasks": {"proxy_url": "http://127.0.0.1:8000/api/clickup/tasks"}})
    assert tasks.collect(ctx, {}) == []
    assert getter.calls[0]["url"] == "http://127.0.0.1:8000/api/clickup/tasks"
    assert getter.calls[0]["headers"] == {}


def test_tasks_present_adds_badges():
    data = [
        {"id": "1", "name": "a", "status": "in progress", "dueDate": "2024-05-09T12:00:00.000Z", "priority": 1},
        {"id": "2", "name": "b", "status": "to do", "dueDate": None, "priority": None},
    ]
    shown = tasks.present(data, NOW, Config(raw={}))
    assert shown["summary"] == "2 active tasks"
    first, second = shown["tasks"]
    assert first["due"]["text"] == "Overdue"
    assert first["priority_label"]["text"] == "Urgent"
    assert second["due"] is None
    assert second["priority_label"] is None
    assert tasks.present(data[:1], NOW, Config(raw={}))["summary"] == "1 active task"


ICS = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//test//EN
BEGIN:VEVENT
UID:1
DTSTART:20240510T150000Z
DTEND:20240510T160000Z
SUMMARY:Standup
CATEGORIES:MEETING
END:VEVENT
BEGIN:VEVENT
UID:2
DTSTART;VALUE=DATE:20240520
SUMMARY:Dentist
END:VEVENT
BEGIN:VEVENT
UID:3
DTSTART:20240610T150000Z
SUMMARY:Next month
END:VEVENT
END:VCALENDAR
"""


def test_calendar_reads_ics_for_selected_month(make_ctx, tmp_path):
    path = tmp_path / "cal.ics"
    path.write_text(ICS, encoding="utf-8")
    ctx = make_ctx({"calendar": {"source": "ics", "ics_path": str(path)}}, now=lambda: NOW)

    data = calendar.collect(ctx, {"date": "2024-05-20"})

    assert data["selected"] == "2024-05-20"
    assert [e["summary"] for e in data["events"]] == ["Standup", "Dentist"]
    assert data["events"][0]["type"] == "meeting"

    shown = calendar.present(data, NOW, ctx.config)
    assert shown["month"] == "May 2024"
    assert [e["summary"] for e in shown["events"]] == ["Dentist"]
    assert shown["events"][0]["time"] is None
    flagged = {c["date"] for week in shown["weeks"] for c in week if c["has_event"]}
    assert "2024-05-20" in flagged
    assert all(len(week) == 7 for week in shown["weeks"])


def test_calendar_without_source_is_empty(make_ctx):
    data = calendar.collect(make_ctx({}, now=lambda: NOW), {})
    assert data["events"] == []
    assert data["selected"] == NOW.astimezone().date().isoformat()


def test_calendar_caldav_needs_credentials(make_ctx):
    with pytest.raises(ConfigError):
        calendar.collect(make_ctx({"calendar": {"source": "caldav"}}, now=lambda: NOW), {})
