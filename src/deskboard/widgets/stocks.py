"""Stock quotes under a provider limit of about five calls per minute.

Quotes are requested one symbol at a time with a fixed pause between calls,
and the combined result is cached for a few minutes so that page reloads
and timer ticks do not spend the allowance again. A manual refresh drops the
cached entry first and always goes to the network.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from ..config import Config
from ..display import to_number
from ..errors import ConfigError, DashboardError, FetchCancelled, UpstreamHttpError
from .base import WidgetContext, get_json

logger = logging.getLogger(__name__)

name = "stocks"
title = "Stock Market"
failure_message = "Failed to load stock data. Please try again later."

CACHE_KEY = "stocksCache"
NO_DATA = "No stock data available. Please check your API key or try again later."

mark_param = "favorites"

def default_params(cfg: Config) -> dict:
    return {"favorites": list(cfg.stock_favorites)}

def parse_quote(symbol: str, quote: dict[str, Any]) -> dict[str, Any]:
    return {
        "symbol": quote.get("01. symbol") or symbol,
        "price": to_number(quote.get("05. price")),
        "change": to_number(quote.get("09. change")),
        "changePercent": to_number(quote.get("10. change percent")),
    }

def _fetch_quote(ctx: WidgetContext, symbol: str) -> dict[str, Any] | None:
    cfg = ctx.config
    try:
        js = get_json(
            f"{cfg.stocks_base_url}/query",
            params={"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": cfg.stocks_api_key},
            error_message=f"Failed to fetch {symbol}",
        )
    except DashboardError as e:
        logger.warning("Skipping %s: %s", symbol, e)
        return None

    quote = js.get("Global Quote") if isinstance(js, dict) else None
    if not quote or not isinstance(quote, dict):
        logger.warning("No data for %s - possible rate limit", symbol)
        return None
    return parse_quote(symbol, quote)

def collect(ctx: WidgetContext, params: dict, force: bool = False) -> list[dict[str, Any]]:
    cfg = ctx.config
    if not cfg.stocks_api_key:
        raise ConfigError("Alpha Vantage API key not configured")

    # One batch at a time; a cycle started mid-batch waits here.
    with ctx.throttle as throttle:
        if force:
            ctx.cache.invalidate(CACHE_KEY)
        else:
            cached = ctx.cache.get(CACHE_KEY)
            if isinstance(cached, list):
                logger.debug("Using cached quotes for %d symbols", len(cached))
                return cached
            if cached is not None:
                logger.warning("Ignoring cached quotes of unexpected type %s", type(cached).__name__)

        quotes = []
        for i, symbol in enumerate(cfg.stock_symbols):
            delay = cfg.stocks_delay if i else throttle.remaining(cfg.stocks_delay)
            if ctx.wait(delay):
                raise FetchCancelled(f"Stopped after {i} of {len(cfg.stock_symbols)} symbols")
            quote = _fetch_quote(ctx, symbol)
            throttle.mark()
            if quote is not None:
                quotes.append(quote)

        if ctx.stopping.is_set():
            raise FetchCancelled("Stopped before caching quotes")
        if not quotes:
            raise UpstreamHttpError(NO_DATA)

        ctx.cache.set(CACHE_KEY, quotes)
        return quotes

def present(
    data: list[dict[str, Any]], now: datetime, cfg: Config, params: dict | None = None
) -> list[dict[str, Any]]:
    chosen = (params or {}).get("favorites", cfg.stock_favorites)
    favorites = {str(s).upper() for s in chosen}
    return [
        {
            **q,
            "direction": "up" if q.get("change", 0) >= 0 else "down",
            "favorite": q.get("symbol") in favorites,
        }
        for q in data
    ]
