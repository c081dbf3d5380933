# readiness_auth/adapters/outbound/cache/redis_store.py

import logging
from typing import List, Optional

import redis.asyncio as aioredis

from readiness_auth.application.ports.outbound import IKeyValueStore

logger = logging.getLogger(__name__)


class RedisKeyValueStore(IKeyValueStore):
    """Thin redis.asyncio wrapper implementing IKeyValueStore."""

    def __init__(self, redis_url: str, *, socket_timeout: float = 5.0, client=None):
        self.redis_url = redis_url
        self.client = client or aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(
            self,
            key: str,
            value: str,
            ttl_seconds: Optional[int] = None,
            only_if_exists: bool = False,
    ) -> bool:
        ex = max(1, int(ttl_seconds)) if ttl_seconds is not None else None
        return bool(await self.client.set(key, value, ex=ex, xx=only_if_exists))

    async def delete(self, key: str) -> int:
        return await self.client.delete(key)

    async def keys(self, pattern: str) -> List[str]:
        # SCAN instead of KEYS so a large keyspace does not block the server
        return [key async for key in self.client.scan_iter(match=pattern, count=500)]

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return bool(await self.client.expire(key, max(1, int(ttl_seconds))))

    async def get_and_delete(self, key: str) -> Optional[str]:
        return await self.client.getdel(key)

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("Redis connection closed")
