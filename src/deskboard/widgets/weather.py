from __future__ import annotations

from datetime import datetime
from typing import Any

from ..config import Config
from ..display import condition_icon, js_round, to_number
from ..errors import ConfigError, ParseError
from .base import WidgetContext, get_json

name = "weather"
title = "Current Weather"
failure_message = "Failed to load weather data. Please try again later."

ICON_URL = "https://openweathermap.org/img/wn/{code}@4x.png"

def default_params(cfg: Config) -> dict:
    return {"city": cfg.city}

def collect(ctx: WidgetContext, params: dict, force: bool = False) -> dict[str, Any]:
    cfg = ctx.config
    api_key = cfg.weather_api_key
    if not api_key:
        raise ConfigError("Weather API key not found")

    city = str(params.get("city") or cfg.city).strip()
    js = get_json(
        f"{cfg.weather_base_url}/weather",
        params={"q": city, "appid": api_key, "units": cfg.units},
        error_message="Failed to fetch weather data. Please try again.",
        status_messages={404: "City not found. Please try another city."},
    )
    if not isinstance(js, dict):
        raise ParseError(failure_message)

    main = js.get("main") or {}
    conditions = js.get("weather") or [{}]
    current = conditions[0] if isinstance(conditions[0], dict) else {}
    icon_code = current.get("icon")

    return {
        "location": js.get("name") or city,
        "temp": to_number(main.get("temp")),
        "feels_like": to_number(main.get("feels_like")),
        "humidity": to_number(main.get("humidity")),
        "pressure": to_number(main.get("pressure")),
        "wind": to_number((js.get("wind") or {}).get("speed")),
        "condition": current.get("main") or "",
        "description": current.get("description") or "",
        "icon_url": ICON_URL.format(code=icon_code) if icon_code else None,
    }

def present(data: dict[str, Any], now: datetime, cfg: Config, params: dict | None = None) -> dict[str, Any]:
    return {
        **data,
        "temp": js_round(data["temp"]),
        "feels_like": js_round(data["feels_like"]),
        "icon": condition_icon(data.get("condition")),
    }
