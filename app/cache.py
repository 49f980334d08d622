# app/cache.py
"""Shared key-value cache for search results.

Both stores expose ``get`` / ``put`` / ``forget``. Redis is used when
``REDIS_URL`` is set; otherwise an in-process TTL map is used. Redis errors
are logged and treated as a miss so a cache outage never fails a search.
"""
import os
import json
import time
import hashlib
from typing import Any, Callable, Dict, Optional, Protocol

import redis
from redis.exceptions import RedisError
from dotenv import load_dotenv

from .utils import get_logger, env_int

load_dotenv()
logger = get_logger(__name__)

REDIS_URL = os.getenv("REDIS_URL")
SEARCH_CACHE_TTL = env_int("SEARCH_CACHE_TTL", 300)
SUGGESTION_CACHE_TTL = env_int("SUGGESTION_CACHE_TTL", 3600)


class CacheStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...
    def put(self, key: str, value: Any, ttl: int) -> None: ...
    def forget(self, key: str) -> None: ...


class InMemoryCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, tuple] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def put(self, key: str, value: Any, ttl: int) -> None:
        now = self._clock()
        self._sweep(now)
        self._entries[key] = (now + ttl, value)

    def _sweep(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]

    def forget(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self):
        return len(self._entries)


class RedisCache:
    """Values are stored as JSON strings with ``SETEX``."""

    def __init__(self, url: str, client=None):
        self.client = client or redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.client.get(key)
        except RedisError as e:
            logger.warning("Cache get failed for %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Discarding undecodable cache entry %s: %s", key, e)
            return None

    def put(self, key: str, value: Any, ttl: int) -> None:
        try:
            self.client.setex(key, ttl, json.dumps(value, default=str))
        except RedisError as e:
            logger.warning("Cache put failed for %s: %s", key, e)

    def forget(self, key: str) -> None:
        try:
            self.client.delete(key)
        except RedisError as e:
            logger.warning("Cache forget failed for %s: %s", key, e)


def make_cache_key(prefix: str, payload: Dict[str, Any]) -> str:
    """Stable key: ``prefix:`` + md5 of the payload serialized with sorted keys."""
    blob = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return f"{prefix}:{hashlib.md5(blob.encode('utf-8')).hexdigest()}"


def remember(cache: CacheStore, key: str, ttl: int, producer: Callable[[], Any]) -> Any:
    """Return the cached value for ``key`` or compute, store and return it.

    Concurrent misses may both compute; the last write wins.
    """
    cached = cache.get(key)
    if cached is not None:
        logger.debug("Cache hit %s", key)
        return cached
    logger.debug("Cache miss %s", key)
    value = producer()
    cache.put(key, value, ttl)
    return value


_cache: Optional[CacheStore] = None


def get_cache() -> CacheStore:
    """FastAPI dependency returning the process-wide cache store."""
    global _cache
    if _cache is None:
        _cache = RedisCache(REDIS_URL) if REDIS_URL else InMemoryCache()
        logger.info("Using %s for search cache", type(_cache).__name__)
    return _cache
