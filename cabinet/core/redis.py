import redis.asyncio as redis
from redis.exceptions import RedisError
from typing import Optional
import json
import logging

from cabinet.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Thin cache wrapper; every call is a no-op until connect() succeeds"""

    def __init__(self):
        self.redis: Optional[redis.Redis] = None

    async def connect(self):
        """Open the connection pool; the first command actually dials"""
        self.redis = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True
        )

    async def disconnect(self):
        """Close the pool at shutdown"""
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    async def get(self, key: str) -> Optional[str]:
        """String value, or None on a miss or a Redis error"""
        if not self.redis:
            return None
        try:
            return await self.redis.get(key)
        except RedisError as e:
            logger.warning(f"Redis GET {key} failed: {e}")
            return None

    async def set(self, key: str, value: str, expire: int = 3600) -> bool:
        """Store with a TTL in seconds"""
        if not self.redis:
            return False
        try:
            return bool(await self.redis.set(key, value, ex=expire))
        except RedisError as e:
            logger.warning(f"Redis SET {key} failed: {e}")
            return False

    async def delete(self, key: str) -> bool:
        if not self.redis:
            return False
        try:
            return await self.redis.delete(key) > 0
        except RedisError as e:
            logger.warning(f"Redis DEL {key} failed: {e}")
            return False

    async def ping(self) -> bool:
        if not self.redis:
            return False
        try:
            return bool(await self.redis.ping())
        except RedisError:
            return False

    async def get_json(self, key: str) -> Optional[dict]:
        """Decoded JSON object; undecodable entries read as a miss"""
        value = await self.get(key)
        if value:
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return None
        return None

    async def set_json(self, key: str, value: dict, expire: int = 3600) -> bool:
        try:
            json_str = json.dumps(value)
        except TypeError:
            return False
        return await self.set(key, json_str, expire)


# Process-wide Redis client, handed to services through get_redis
redis_client = RedisClient()


async def get_redis() -> RedisClient:
    """FastAPI dependency for the shared cache client"""
    return redis_client
