from __future__ import annotations

from datetime import datetime
from typing import Any

from ..config import Config
from ..display import hours_ago
from ..errors import ConfigError, ParseError
from .base import WidgetContext, get_json

name = "news"
title = "Top Headlines"
failure_message = "Failed to load news. Please try again later."

PLACEHOLDER_IMAGE = "https://images.unsplash.com/photo-1451187580459-43490279c0fa?w=400"

mark_param = "bookmarks"

def default_params(cfg: Config) -> dict:
    return {"bookmarks": []}

def _article(index: int, raw: dict[str, Any], fetched_at: datetime) -> dict[str, Any]:
    return {
        "id": str(index + 1),
        "title": raw.get("title") or "No title",
        "description": raw.get("description") or "No description available",
        "url": raw.get("url") or "#",
        "image_url": raw.get("urlToImage") or PLACEHOLDER_IMAGE,
        "source": (raw.get("source") or {}).get("name") or "Unknown",
        "published_at": raw.get("publishedAt") or fetched_at.isoformat(),
        "category": "News",
    }

def collect(ctx: WidgetContext, params: dict, force: bool = False) -> list[dict[str, Any]]:
    cfg = ctx.config
    api_key = cfg.news_api_key
    if not api_key:
        raise ConfigError("News API key not found")

    js = get_json(
        f"{cfg.news_base_url}/top-headlines",
        params={"country": cfg.news_country, "pageSize": cfg.news_page_size, "apiKey": api_key},
        error_message=failure_message,
    )
    articles = js.get("articles") if isinstance(js, dict) else None
    if not isinstance(articles, list):
        raise ParseError(failure_message)

    fetched_at = ctx.now()
    return [_article(i, a, fetched_at) for i, a in enumerate(articles) if isinstance(a, dict)]

def present(
    data: list[dict[str, Any]], now: datetime, cfg: Config, params: dict | None = None
) -> list[dict[str, Any]]:
    bookmarks = set((params or {}).get("bookmarks") or [])
    return [
        {**a, "time_ago": hours_ago(now, a["published_at"]), "bookmarked": a["id"] in bookmarks}
        for a in data
    ]
