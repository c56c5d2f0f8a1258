#!/usr/bin/env python3
"""
Short-lived Redis cache for expensive analytics responses.

Keys embed floor(now / ttl) so every entry also rolls over at bucket
boundaries, independent of when it was written.
"""

import json
import logging
import math
import time
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class ResultCache:
    def __init__(self, client: Optional[aioredis.Redis], ttl: int = 240):
        self.client = client
        self.ttl = ttl

    @classmethod
    def from_url(cls, redis_url: str, ttl: int = 240) -> "ResultCache":
        client = aioredis.from_url(redis_url, decode_responses=True, socket_connect_timeout=2, socket_timeout=2)
        return cls(client, ttl)

    def key(self, prefix: str, *params: Any, now: Optional[float] = None) -> str:
        now = time.time() if now is None else now
        bucket = math.floor(now / self.ttl)
        parts = [prefix, *(str(p) for p in params), str(bucket)]
        return ":".join(parts)

    async def get(self, key: str) -> Optional[Any]:
        if self.client is None:
            return None
        try:
            cached = await self.client.get(key)
        except RedisError as e:
            logger.warning(f"Result cache read failed for {key}: {e}")
            return None
        return json.loads(cached) if cached else None

    async def put(self, key: str, value: Any) -> None:
        if self.client is None:
            return
        try:
            await self.client.set(key, json.dumps(value, default=str), ex=self.ttl)
        except RedisError as e:
            logger.warning(f"Result cache write failed for {key}: {e}")

    async def get_or_compute(self, key: str, compute: Callable[[], Awaitable[Any]]) -> Any:
        cached = await self.get(key)
        if cached is not None:
            logger.debug(f"Result cache hit {key}")
            return cached
        value = await compute()
        await self.put(key, value)
        return value

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
