"""Cart persistence in Redis, outside the store's synchronous mutation path."""
import json
from typing import Any, Optional

from garden_market.db import TTL, RedisKeys, get_redis
from garden_market.errors import CartError
from garden_market.logging import get_logger, sanitize_id_for_logging

from .models import Cart, LineRecord
from .service import CartStore

logger = get_logger(__name__)


class CartRepository:
    """
    Saves and restores cart lines per session.

    Only identities, quantities and captured prices are stored; flags and
    live prices are recomputed from the catalog after loading.
    """

    def __init__(self, redis_client: Any = None):
        self._redis = redis_client  # Lazy initialization

    @property
    def redis(self):
        """Get Redis client (lazy initialization)."""
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    async def save(self, session_id: str, cart: Cart) -> None:
        """Store the cart with a 24h TTL; an empty cart deletes the key."""
        key = RedisKeys.cart_key(session_id)
        if cart.is_empty:
            await self.redis.delete(key)
            return
        payload = {"lines": [line.to_dict() for line in cart.lines]}
        await self.redis.set(key, json.dumps(payload), ex=TTL.CART)

    async def load(self, session_id: str, store: CartStore) -> Optional[Cart]:
        """
        Restore a stored cart into the store.

        Returns:
            The restored cart, or None if nothing usable was stored
        """
        key = RedisKeys.cart_key(session_id)
        data = await self.redis.get(key)
        if not data:
            return None

        try:
            payload = json.loads(data)
            records = [LineRecord.from_dict(item) for item in payload.get("lines", [])]
            return store.restore(records)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            # CartError is a ValueError: inconsistent payloads are dropped too
            kind = e.code if isinstance(e, CartError) else type(e).__name__
            logger.warning(
                f"Corrupted cart data for session {sanitize_id_for_logging(session_id)}: {kind}"
            )
            await self.redis.delete(key)
            return None

    async def delete(self, session_id: str) -> None:
        await self.redis.delete(RedisKeys.cart_key(session_id))
