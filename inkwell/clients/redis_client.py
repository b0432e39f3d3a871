"""
Redis client wrapper.

Responsibilities:
  • Sessions — STRING keyed by sess:{token}, value = user id,
               TTL renewed on every read (GETEX) for sliding expiry.

Shared by every API worker, unlike the in-memory fallback.
"""
import logging
from typing import Optional

import redis.asyncio as aioredis

from inkwell.config import Settings
from inkwell.sessions import SessionStore, new_token

logger = logging.getLogger(__name__)

SESSION_KEY = "sess:{token}"


async def init_redis(settings: Settings) -> aioredis.Redis:
    client = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        decode_responses=True,
    )
    await client.ping()
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)
    return client


class RedisSessionStore(SessionStore):
    def __init__(self, redis: aioredis.Redis, ttl_seconds: int) -> None:
        super().__init__(ttl_seconds)
        self._redis = redis

    async def create(self, user_id: int) -> str:
        token = new_token()
        await self._redis.set(SESSION_KEY.format(token=token), str(user_id), ex=self.ttl_seconds)
        return token

    async def resolve(self, token: str) -> Optional[int]:
        # GETEX reads and pushes the expiry out in one round trip.
        raw = await self._redis.getex(SESSION_KEY.format(token=token), ex=self.ttl_seconds)
        if raw is None:
            return None
        return int(raw)

    async def revoke(self, token: str) -> None:
        await self._redis.delete(SESSION_KEY.format(token=token))

    async def close(self) -> None:
        await self._redis.aclose()
