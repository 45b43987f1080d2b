from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)

def epoch_ms() -> int:
    return int(time.time() * 1000)

class MemoryStore:
    """String key-value store kept in process memory."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

class JsonFileStore:
    """String key-value store persisted as a single JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable storage file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(data, fh)
        tmp.replace(self.path)

    def get_item(self, key: str) -> str | None:
        value = self._load().get(key)
        return None if value is None else str(value)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)

class TimedCache:
    """JSON payloads with a store timestamp, read back only while fresh.

    The payload for ``key`` is stored under ``key`` and its epoch-ms store
    time under ``key + "Time"``.
    """

    def __init__(
        self,
        store: Any,
        ttl: float = 300.0,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self.clock = clock

    @staticmethod
    def time_key(key: str) -> str:
        return f"{key}Time"

    def get(self, key: str) -> Any:
        payload = self.store.get_item(key)
        stored_at = self.store.get_item(self.time_key(key))
        if payload is None or stored_at is None:
            return None
        try:
            age_ms = self.clock() - int(stored_at)
        except ValueError:
            return None
        if age_ms >= self.ttl * 1000:
            return None
        try:
            return json.loads(payload)
        except ValueError:
            logger.warning("Discarding malformed cache entry %r", key)
            return None

    def set(self, key: str, value: Any) -> None:
        self.store.set_item(key, json.dumps(value))
        self.store.set_item(self.time_key(key), str(self.clock()))

    def invalidate(self, key: str) -> None:
        self.store.remove_item(key)
        self.store.remove_item(self.time_key(key))

__all__ = ["JsonFileStore", "MemoryStore", "TimedCache", "epoch_ms"]
