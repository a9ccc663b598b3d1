"""
Redis client for cart persistence.

Provides a lazily created Upstash Redis client (REST based, async).
"""
from typing import Optional

from upstash_redis.asyncio import Redis as AsyncRedis

from garden_market.config import Settings

_redis_client: Optional[AsyncRedis] = None


def get_redis(settings: Optional[Settings] = None) -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Uses the standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN
    """
    global _redis_client

    if _redis_client is None:
        settings = settings or Settings.from_env()
        if not settings.persistence_enabled:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(url=settings.redis_url, token=settings.redis_token)

    return _redis_client


class RedisKeys:
    """Redis key prefixes."""

    CART = "cart:"  # cart:{session_id}

    @staticmethod
    def cart_key(session_id: str) -> str:
        return f"{RedisKeys.CART}{session_id}"


class TTL:
    """Time-to-live constants for Redis keys (seconds)."""

    CART = 86400  # 24 hours
