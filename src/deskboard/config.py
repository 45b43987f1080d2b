from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import yaml

DEFAULT_WIDGETS = ["weather", "stocks", "forecast", "calendar", "tasks", "news"]
DEFAULT_SYMBOLS = ["AAPL", "GOOGL", "MSFT", "AMZN", "NVDA", "TSLA"]

# Secrets may live in config.yaml or in the environment.
ENV_KEYS = {
    ("weather", "api_key"): "OPEN_WEATHER_MAP_API",
    ("news", "api_key"): "NEWS_API",
    ("stocks", "api_key"): "STOCKS_API",
    ("tasks", "api_token"): "CLICKUP_API_TOKEN",
}

def _expand(path: str) -> str:
    return os.path.expanduser(os.path.expandvars(path))

@dataclass(frozen=True)
class Config:
    raw: dict

    def section(self, name: str) -> dict:
        value = self.raw.get(name) or {}
        if not isinstance(value, dict):
            raise ValueError(f"config section {name!r} must be a mapping")
        return value

    def _secret(self, section: str, key: str) -> str:
        value = self.section(section).get(key)
        if not value:
            value = os.environ.get(ENV_KEYS[(section, key)], "")
        return str(value).strip()

    # Dashboard

    @property
    def widget_order(self) -> list[str]:
        return list(self.section("dashboard").get("widgets", DEFAULT_WIDGETS))

    @property
    def refresh_interval(self) -> float:
        return float(self.section("dashboard").get("refresh_seconds", 300))

    @property
    def timezone(self) -> str | None:
        tz = self.section("dashboard").get("timezone")
        return str(tz) if tz else None

    @property
    def cache_path(self) -> Path:
        out = self.section("cache").get("path", "~/.cache/deskboard/storage.json")
        return Path(_expand(str(out)))

    # Weather / forecast

    @property
    def weather_api_key(self) -> str:
        return self._secret("weather", "api_key")

    @property
    def weather_base_url(self) -> str:
        return str(self.section("weather").get("base_url", "https://api.openweathermap.org/data/2.5")).rstrip("/")

    @property
    def city(self) -> str:
        return str(self.section("weather").get("city", "Bethesda")).strip()

    @property
    def units(self) -> str:
        return str(self.section("weather").get("units", "metric")).lower()

    # News

    @property
    def news_api_key(self) -> str:
        return self._secret("news", "api_key")

    @property
    def news_base_url(self) -> str:
        return str(self.section("news").get("base_url", "https://newsapi.org/v2")).rstrip("/")

    @property
    def news_country(self) -> str:
        return str(self.section("news").get("country", "us"))

    @property
    def news_page_size(self) -> int:
        return int(self.section("news").get("page_size", 5))

    # Stocks

    @property
    def stocks_api_key(self) -> str:
        return self._secret("stocks", "api_key")

    @property
    def stocks_base_url(self) -> str:
        return str(self.section("stocks").get("base_url", "https://www.alphavantage.co")).rstrip("/")

    @property
    def stock_symbols(self) -> list[str]:
        return [str(s).upper() for s in self.section("stocks").get("symbols", DEFAULT_SYMBOLS)]

    @property
    def stock_favorites(self) -> list[str]:
        return [str(s).upper() for s in self.section("stocks").get("favorites", [])]

    @property
    def stocks_delay(self) -> float:
        return float(self.section("stocks").get("delay_seconds", 13))

    @property
    def stocks_cache_ttl(self) -> float:
        return float(self.section("stocks").get("cache_seconds", 300))

    # Tasks

    @property
    def clickup_token(self) -> str:
        return self._secret("tasks", "api_token")

    @property
    def clickup_base_url(self) -> str:
        return str(self.section("tasks").get("base_url", "https://api.clickup.com/api/v2")).rstrip("/")

    @property
    def tasks_proxy_url(self) -> str | None:
        url = str(self.section("tasks").get("proxy_url", "")).strip()
        return url or None

    # Server

    @property
    def host(self) -> str:
        return str(self.section("server").get("host", "127.0.0.1"))

    @property
    def port(self) -> int:
        return int(self.section("server").get("port", 8000))

    @property
    def log_level(self) -> str:
        return str(self.section("logging").get("level", "INFO")).upper()

def load_config(path: str | Path | None) -> Config:
    if path is None:
        return Config(raw={})
    p = Path(_expand(str(path)))
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("config.yaml must contain a YAML mapping at top level.")
    return Config(raw=raw)
