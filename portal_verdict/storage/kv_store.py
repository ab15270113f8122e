"""TTL-aware key-value backends used to persist the flow context.

Backends raise ``PersistenceError`` on I/O failure; callers decide whether that
is fatal.
"""
import asyncio
import json
import logging
import os
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from portal_verdict.app.errors import PersistenceError
from portal_verdict.app.settings import Settings

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store; expiry is checked on read."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[str]:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """All keys in one JSON document on disk. Writes go through a temp file and ``os.replace``."""

    def __init__(self, path: str | Path, clock: Callable[[], float] = time.time):
        self.path = Path(path)
        self._clock = clock
        self._lock = asyncio.Lock()

    def _read(self) -> Dict[str, Dict]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"could not read {self.path}: {exc}") from exc
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Dict]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except OSError as exc:
            raise PersistenceError(f"could not write {self.path}: {exc}") from exc

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        entry = data.get(key)
        if not isinstance(entry, dict):
            return None
        expires_at = entry.get("expires_at")
        if expires_at is not None and self._clock() >= expires_at:
            return None
        return entry.get("value")

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[key] = {
                "value": value,
                "expires_at": self._clock() + ttl_seconds if ttl_seconds else None,
            }
            await asyncio.to_thread(self._write, data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if data.pop(key, None) is not None:
                await asyncio.to_thread(self._write, data)


class RedisKeyValueStore(KeyValueStore):
    """Redis backend; expiry is delegated to ``SET ... EX``."""

    def __init__(self, url: str = "redis://localhost:6379/0", client: redis.Redis | None = None):
        self.url = url
        self._redis = client

    def _client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self.url, encoding="utf-8", decode_responses=True)
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client().get(key)
        except (redis.RedisError, OSError) as exc:
            raise PersistenceError(f"redis GET {key} failed: {exc}") from exc

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        try:
            await self._client().set(key, value, ex=ttl_seconds or None)
        except (redis.RedisError, OSError) as exc:
            raise PersistenceError(f"redis SET {key} failed: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client().delete(key)
        except (redis.RedisError, OSError) as exc:
            raise PersistenceError(f"redis DEL {key} failed: {exc}") from exc

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def build_key_value_store(settings: Settings) -> KeyValueStore:
    backend = settings.store_backend.lower()
    if backend == "file":
        logger.info("session store: json file at %s", settings.store_path)
        return JsonFileKeyValueStore(settings.store_path)
    if backend == "redis":
        logger.info("session store: redis at %s", settings.redis_url)
        return RedisKeyValueStore(settings.redis_url)
    if backend != "memory":
        logger.warning("unknown store_backend=%r; falling back to memory", settings.store_backend)
    return InMemoryKeyValueStore()
