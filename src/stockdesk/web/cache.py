"""Response cache: Redis when reachable, otherwise an in-process TTLCache."""

import json
import logging
from typing import Any

from cachetools import TTLCache

logger = logging.getLogger(__name__)

KEY_PREFIX = "stockdesk:"


class CacheService:
    """Async get/set over Redis or a local TTLCache, keyed under ``stockdesk:``."""

    def __init__(self, redis_client=None, ttl: int = 3600, maxsize: int = 512):
        self._redis = redis_client
        self._ttl = ttl
        self._memory: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)

    @classmethod
    async def create(cls, redis_url: str | None, ttl: int = 3600) -> "CacheService":
        """Connect to Redis at ``redis_url``; use memory when it is empty or unreachable."""
        if not redis_url:
            return cls(redis_client=None, ttl=ttl)
        try:
            import redis.asyncio as aioredis

            client = aioredis.from_url(redis_url, decode_responses=True)
            await client.ping()
            logger.info("Cache: connected to Redis")
            return cls(redis_client=client, ttl=ttl)
        except Exception as e:
            logger.warning("Cache: Redis unavailable (%s), using in-memory TTLCache", e)
            return cls(redis_client=None, ttl=ttl)

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    async def get(self, key: str) -> Any | None:
        full_key = KEY_PREFIX + key
        if self._redis is None:
            return self._memory.get(full_key)
        try:
            value = await self._redis.get(full_key)
        except Exception as e:
            logger.warning("Cache get error for %s: %s", key, e)
            return None
        return json.loads(value) if value is not None else None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        full_key = KEY_PREFIX + key
        if self._redis is None:
            self._memory[full_key] = value
            return
        try:
            await self._redis.setex(full_key, ttl or self._ttl, json.dumps(value, default=str))
        except Exception as e:
            logger.warning("Cache set error for %s: %s", key, e)

    async def delete(self, key: str) -> None:
        full_key = KEY_PREFIX + key
        if self._redis is None:
            self._memory.pop(full_key, None)
            return
        try:
            await self._redis.delete(full_key)
        except Exception as e:
            logger.warning("Cache delete error for %s: %s", key, e)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
