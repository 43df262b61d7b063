"""Redis-backed storage for short-lived upstream credentials.

Holds the Sprout OAuth access token so every worker process (and the
scheduler) shares one token instead of exchanging credentials per process.
Entries expire through Redis TTLs.
"""

import logging

import redis.asyncio as redis

from config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# Redis key prefixes
TOKEN_PREFIX = "smash:tokens:"


class RedisStore:
    """Async Redis connection shared across the app."""

    _pool: redis.Redis | None = None

    @classmethod
    async def get_client(cls) -> redis.Redis:
        """Get or create Redis connection pool."""
        if cls._pool is None:
            cls._pool = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return cls._pool

    @classmethod
    async def close(cls) -> None:
        """Close Redis connection pool."""
        if cls._pool is not None:
            await cls._pool.close()
            cls._pool = None

    # --- Token Operations ---

    @classmethod
    async def get_token(cls, key: str) -> str | None:
        client = await cls.get_client()
        return await client.get(f"{TOKEN_PREFIX}{key}")

    @classmethod
    async def save_token(cls, key: str, token: str, ttl_seconds: int) -> None:
        """Store a token; Redis drops it after ``ttl_seconds``."""
        client = await cls.get_client()
        await client.set(f"{TOKEN_PREFIX}{key}", token, ex=max(ttl_seconds, 1))

    # --- Health Check ---

    @classmethod
    async def health_check(cls) -> bool:
        """Check if Redis is available."""
        try:
            client = await cls.get_client()
            await client.ping()
            return True
        except (redis.RedisError, OSError) as e:
            logger.debug(f"Redis health check failed: {e}")
            return False


class RedisTokenCache:
    """TokenCache implementation on top of RedisStore."""

    async def get(self, key: str) -> str | None:
        return await RedisStore.get_token(key)

    async def set(self, key: str, token: str, ttl_seconds: int) -> None:
        await RedisStore.save_token(key, token, ttl_seconds)
