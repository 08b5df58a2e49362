"""
View cache.

Redis-backed cache for read views (trip list pages). Each table has a
version counter; bumping it invalidates every cached view of that table at
once. A Redis failure or an unreadable entry degrades to a cache miss.
"""

import json
import logging
from typing import Any, Optional

from redis.exceptions import RedisError

from fleet_backend.app.core.config import settings

logger = logging.getLogger("fleet.cache")


class ViewCache:

    def __init__(self, redis, ttl_seconds: Optional[int] = None):
        self.redis = redis
        self.ttl_seconds = ttl_seconds or settings.view_cache_ttl_seconds

    @staticmethod
    def version_key(table: str) -> str:
        return f"cache:version:{table}"

    async def _version(self, table: str) -> str:
        version = await self.redis.get(self.version_key(table))
        return str(version or 0)

    async def get(self, table: str, key: str) -> Optional[Any]:
        try:
            version = await self._version(table)
            raw = await self.redis.get(f"cache:{table}:{version}:{key}")
        except RedisError:
            logger.warning("View cache read failed for %s:%s", table, key, exc_info=True)
            return None

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable cached view %s:%s", table, key)
            return None

    async def set(self, table: str, key: str, data: Any) -> None:
        try:
            version = await self._version(table)
            await self.redis.set(
                f"cache:{table}:{version}:{key}", json.dumps(data), ex=self.ttl_seconds
            )
        except RedisError:
            logger.warning("View cache write failed for %s:%s", table, key, exc_info=True)

    async def invalidate(self, table: str) -> None:
        """Drop every cached view of ``table``; old keys expire via TTL."""
        try:
            await self.redis.incr(self.version_key(table))
        except RedisError:
            logger.warning("View cache invalidation failed for %s", table, exc_info=True)
