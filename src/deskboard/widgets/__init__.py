from __future__ import annotations

from . import weather, forecast, stocks, news, tasks, calendar

REGISTRY = {
    weather.name: weather,
    forecast.name: forecast,
    stocks.name: stocks,
    news.name: news,
    tasks.name: tasks,
    calendar.name: calendar,
}
