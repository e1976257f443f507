"""TTL key-value stores for OAuth states and user sessions.

Two namespaces share one backend: ``bucketview:states:`` for single-use CSRF
states and ``bucketview:sessions:`` for session records. Unlike a cache, the
session store fails loudly: a Redis outage must not let a request through.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from redis.asyncio import Redis

logger = logging.getLogger("bucketview.session")

STATES_NAMESPACE = "bucketview:states:"
SESSIONS_NAMESPACE = "bucketview:sessions:"


class KVStore(ABC):
    """String key-value store with per-key expiry, scoped by a namespace prefix."""

    def __init__(self, namespace: str = "") -> None:
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value, or None when absent or expired."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> None:
        """Store ``value`` for ``ttl`` seconds, overwriting any previous value."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the key. Deleting an absent key is not an error."""
        ...

    async def close(self) -> None:
        return None


class MemoryKVStore(KVStore):
    """In-process store keeping ``(value, expires_at)`` pairs, evicted on read."""

    def __init__(self, namespace: str = "", clock: Callable[[], float] = time.time) -> None:
        super().__init__(namespace)
        self._data: dict[str, tuple[str, float]] = {}
        self._clock = clock

    async def get(self, key: str) -> str | None:
        full = self._key(key)
        entry = self._data.get(full)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[full]
            return None
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        self._data[self._key(key)] = (value, self._clock() + ttl)

    async def delete(self, key: str) -> None:
        self._data.pop(self._key(key), None)

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for _, exp in self._data.values() if exp > now)


class RedisKVStore(KVStore):
    """Redis-backed store using ``SET key value EX ttl``."""

    def __init__(self, redis: Any, namespace: str = "") -> None:
        super().__init__(namespace)
        self._redis = redis

    @classmethod
    def from_url(cls, redis_url: str, namespace: str = "") -> "RedisKVStore":
        return cls(Redis.from_url(redis_url, decode_responses=True), namespace)

    async def get(self, key: str) -> str | None:
        value = await self._redis.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode()
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        await self._redis.set(self._key(key), value, ex=ttl)

    async def delete(self, key: str) -> None:
        await self._redis.delete(self._key(key))

    async def close(self) -> None:
        await self._redis.aclose()


def create_kv_stores(backend: str, redis_url: str = "") -> tuple[KVStore, KVStore]:
    """Return ``(states, sessions)`` stores for the configured backend."""
    backend = backend.lower()
    if backend == "memory":
        logger.warning("session: using in-memory store; sessions are lost on restart")
        return MemoryKVStore(STATES_NAMESPACE), MemoryKVStore(SESSIONS_NAMESPACE)
    if backend == "redis":
        # One connection pool, two namespaces
        redis = Redis.from_url(redis_url, decode_responses=True)
        return RedisKVStore(redis, STATES_NAMESPACE), RedisKVStore(redis, SESSIONS_NAMESPACE)
    raise ValueError(f"Unknown session backend: {backend!r}")
