from __future__ import annotations

import copy
import json
import logging
import time
from threading import Lock
from typing import Any, Protocol, Sequence

import redis

from slidecast.core.config import settings

_LOG = logging.getLogger("slidecast.content_store")

KeyPath = Sequence[str]


class ContentStore(Protocol):
    """Key/value persistence keyed by a hierarchical path.

    ``set`` overwrites unconditionally, ``get`` on an absent or expired key
    returns ``None`` and ``delete`` on an absent key is a no-op. TTLs are per key.
    """

    def set(self, key: KeyPath, value: dict[str, Any], ttl_seconds: float | None = None) -> None:
        ...

    def get(self, key: KeyPath) -> dict[str, Any] | None:
        ...

    def delete(self, key: KeyPath) -> None:
        ...

    def has(self, key: KeyPath) -> bool:
        ...

    def close(self) -> None:
        ...


class InMemoryContentStore:
    def __init__(self, clock=time.monotonic):
        self._data: dict[tuple[str, ...], tuple[dict[str, Any], float | None]] = {}
        self._lock = Lock()
        self._clock = clock

    def _live_entry(self, path: tuple[str, ...]) -> tuple[dict[str, Any], float | None] | None:
        entry = self._data.get(path)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            self._data.pop(path, None)
            return None
        return entry

    def set(self, key: KeyPath, value: dict[str, Any], ttl_seconds: float | None = None) -> None:
        path = tuple(key)
        expires_at = None
        if ttl_seconds is not None:
            expires_at = self._clock() + max(float(ttl_seconds), 0.0)
        stored = copy.deepcopy(value)
        with self._lock:
            self._data[path] = (stored, expires_at)

    def get(self, key: KeyPath) -> dict[str, Any] | None:
        with self._lock:
            entry = self._live_entry(tuple(key))
            if entry is None:
                return None
            return copy.deepcopy(entry[0])

    def delete(self, key: KeyPath) -> None:
        with self._lock:
            self._data.pop(tuple(key), None)

    def has(self, key: KeyPath) -> bool:
        with self._lock:
            return self._live_entry(tuple(key)) is not None

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [path for path, (_, expires_at) in self._data.items() if expires_at is not None and expires_at <= now]
            for path in stale:
                self._data.pop(path, None)
        return len(stale)

    def close(self) -> None:
        with self._lock:
            self._data.clear()


class RedisContentStore:
    def __init__(self, client: redis.Redis, *, prefix: str = "slidecast"):
        self.client = client
        self.prefix = str(prefix or "").strip(":")

    def _redis_key(self, key: KeyPath) -> str:
        parts = [str(part) for part in key]
        if self.prefix:
            parts.insert(0, self.prefix)
        return ":".join(parts)

    def set(self, key: KeyPath, value: dict[str, Any], ttl_seconds: float | None = None) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        if ttl_seconds is None:
            self.client.set(self._redis_key(key), payload)
            return
        self.client.set(self._redis_key(key), payload, px=max(int(ttl_seconds * 1000), 1))

    def get(self, key: KeyPath) -> dict[str, Any] | None:
        raw = self.client.get(self._redis_key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def delete(self, key: KeyPath) -> None:
        self.client.delete(self._redis_key(key))

    def has(self, key: KeyPath) -> bool:
        return int(self.client.exists(self._redis_key(key))) > 0

    def close(self) -> None:
        self.client.close()


_cached_store: ContentStore | None = None
_store_lock = Lock()


def _connect_redis() -> redis.Redis:
    client = redis.Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=0.4,
        socket_connect_timeout=0.4,
    )
    client.ping()
    return client


def _build_store() -> ContentStore:
    backend = str(settings.STORAGE_BACKEND or "auto").strip().lower()
    if backend == "memory":
        return InMemoryContentStore()
    if backend == "redis":
        return RedisContentStore(_connect_redis(), prefix=settings.REDIS_KEY_PREFIX)
    if backend != "auto":
        raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
    if not settings.REDIS_URL:
        _LOG.warning("REDIS_URL is not set; topics are kept in process memory")
        return InMemoryContentStore()
    try:
        return RedisContentStore(_connect_redis(), prefix=settings.REDIS_KEY_PREFIX)
    except Exception:
        _LOG.warning("Redis content store unavailable; fallback to in-memory store")
        return InMemoryContentStore()


def get_content_store() -> ContentStore:
    global _cached_store
    if _cached_store is not None:
        return _cached_store
    with _store_lock:
        if _cached_store is None:
            _cached_store = _build_store()
        return _cached_store


def reset_content_store_for_tests() -> None:
    global _cached_store
    with _store_lock:
        _cached_store = None
