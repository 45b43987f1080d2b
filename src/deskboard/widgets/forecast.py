from __future__ import annotations

from datetime import datetime
from typing import Any

from dateutil import tz

from ..config import Config
from ..display import select_daily_forecast
from ..errors import ConfigError, ParseError
from .base import WidgetContext, get_json

name = "forecast"
title = "5-Day Forecast"
failure_message = "Failed to load forecast data"

def default_params(cfg: Config) -> dict:
    return {"city": cfg.city}

def collect(ctx: WidgetContext, params: dict, force: bool = False) -> list[dict[str, Any]]:
    cfg = ctx.config
    api_key = cfg.weather_api_key
    if not api_key:
        raise ConfigError("Weather API key not found")

    city = str(params.get("city") or cfg.city).strip()
    js = get_json(
        f"{cfg.weather_base_url}/forecast",
        params={"q": city, "appid": api_key, "units": cfg.units},
        error_message=failure_message,
    )
    series = js.get("list") if isinstance(js, dict) else None
    if not isinstance(series, list):
        raise ParseError(failure_message)

    zone = tz.gettz(cfg.timezone) if cfg.timezone else None
    return select_daily_forecast(series, zone=zone)

def present(
    data: list[dict[str, Any]], now: datetime, cfg: Config, params: dict | None = None
) -> list[dict[str, Any]]:
    return data
