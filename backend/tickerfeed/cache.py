from __future__ import annotations

import json
import logging
import math
import re
import time
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol

from redis import Redis

from tickerfeed.common.logging import log, setup_logger
from tickerfeed.config.settings import Settings
from tickerfeed.schemas.quote import CacheEntry

logger = setup_logger("cache")

_DAY_MS = 24 * 60 * 60 * 1000
_SAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class FileStore:
    """One file per key under ``directory``."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _path(self, key: str) -> Path:
        return self.directory / f"{_SAFE_KEY_RE.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class RedisStore:
    def __init__(self, client: Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(Redis.from_url(url))

    def get(self, key: str) -> str | None:
        raw = self.client.get(key)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return str(raw)

    def set(self, key: str, value: str) -> None:
        self.client.set(key, value)

    def delete(self, key: str) -> None:
        self.client.delete(key)


def open_store(settings: Settings) -> KeyValueStore:
    backend = settings.cache.backend
    if backend == "redis":
        return RedisStore.from_url(settings.redis_url)
    if backend == "memory":
        return MemoryStore()
    return FileStore(Path(settings.cache.directory).expanduser())


def _mergeable(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str):
        return value.strip() != ""
    return False


def _now_ms() -> int:
    return int(time.time() * 1000)


class LiveCache:
    """Last known field values per ``<provider>:<symbol>`` key.

    The whole mapping lives in one blob under ``storage_key``. Entries older
    than ``max_age_ms`` are dropped whenever the blob is loaded.
    """

    def __init__(
        self,
        store: KeyValueStore,
        storage_key: str = "tickerfeed_live_cache_v1",
        max_age_ms: int = 7 * _DAY_MS,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.store = store
        self.storage_key = storage_key
        self.max_age_ms = max_age_ms
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, store: KeyValueStore | None = None) -> "LiveCache":
        return cls(
            store if store is not None else open_store(settings),
            storage_key=settings.cache.storage_key,
            max_age_ms=int(settings.cache.max_age_days * _DAY_MS),
        )

    def load(self) -> dict[str, CacheEntry]:
        try:
            raw = self.store.get(self.storage_key)
        except Exception as exc:  # noqa: BLE001 - unreadable storage reads as empty
            log(logger, logging.WARNING, "cache_read_failed", error=str(exc))
            return {}
        if not raw:
            return {}
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, TypeError, ValueError):
            return {}
        if not isinstance(payload, dict):
            return {}

        now = self.clock()
        entries: dict[str, CacheEntry] = {}
        for key, item in payload.items():
            if not isinstance(item, dict):
                continue
            captured = item.get("captured_at_ms")
            if not _mergeable(captured) or isinstance(captured, str):
                continue
            if now - captured > self.max_age_ms:
                continue
            fields = item.get("fields")
            clean = {
                name: value
                for name, value in (fields.items() if isinstance(fields, dict) else ())
                if _mergeable(value)
            }
            entries[key] = CacheEntry(key=key, fields=clean, captured_at_ms=int(captured))
        return entries

    def save(self, mapping: Mapping[str, CacheEntry]) -> None:
        blob = {
            key: {"fields": entry.fields, "captured_at_ms": entry.captured_at_ms}
            for key, entry in mapping.items()
        }
        try:
            self.store.set(self.storage_key, json.dumps(blob, ensure_ascii=False))
        except Exception as exc:  # noqa: BLE001 - quota/denied storage is not fatal
            log(logger, logging.WARNING, "cache_write_failed", error=str(exc))

    def set_entry(self, key: str, fields: Mapping[str, Any]) -> CacheEntry:
        mapping = self.load()
        previous = mapping.get(key)
        merged: dict[str, Any] = dict(previous.fields) if previous else {}
        for name, value in fields.items():
            if _mergeable(value):
                merged[name] = value
        entry = CacheEntry(key=key, fields=merged, captured_at_ms=self.clock())
        mapping[key] = entry
        self.save(mapping)
        return entry

    def get_entry(self, key: str) -> CacheEntry | None:
        return self.load().get(key)

    def clear(self) -> None:
        self.store.delete(self.storage_key)
