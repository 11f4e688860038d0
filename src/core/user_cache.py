"""Read-through caching for user reads."""
import json
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from fastapi import Request

if TYPE_CHECKING:
    from core.redis import RedisClient

logger = logging.getLogger(__name__)

# Key for page 1 of the user listing
USERS_LIST_KEY = "users"


def user_key(user_id: int) -> str:
    """Cache key for a single user."""
    return f"user_{user_id}"


class UserCache:
    """
    Short-TTL read-through cache for single-user and user-list reads.

    Values are stored as JSON. The cache is best effort: when Redis is
    unavailable every read falls through to ``compute`` and writes are no-ops.
    Writers must call ``invalidate`` after mutating a user; TTL expiry alone is
    not relied on for write-path consistency.
    """

    def __init__(self, redis_client: "RedisClient", ttl: int = 60) -> None:
        """Initialize user cache with Redis client and default TTL in seconds."""
        self._redis = redis_client
        self.ttl = ttl

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        ttl: int | None = None,
    ) -> Any:
        """
        Return the cached value for key, or compute, store and return it.

        A computed ``None`` is returned but not stored, so a miss for a missing
        user is never pinned in the cache. Concurrent misses for the same key may
        both run ``compute``.

        Args:
            key: Cache key.
            compute: Coroutine function producing a JSON-serializable value.
            ttl: Seconds to keep the value; defaults to the cache TTL.
        """
        data = await self._redis.get(key)
        if data is not None:
            logger.debug("user_cache_hit key=%s", key)
            return json.loads(data)

        logger.debug("user_cache_miss key=%s", key)
        value = await compute()
        if value is not None:
            await self._redis.setex(key, ttl or self.ttl, json.dumps(value))
        return value

    async def invalidate(self, *keys: str) -> None:
        """Remove keys unconditionally. Missing keys are ignored."""
        await self._redis.delete(*keys)
        logger.debug("user_cache_invalidate keys=%s", ",".join(keys))

    async def invalidate_user(self, user_id: int) -> None:
        """Drop a user's cached record and the cached listing."""
        await self.invalidate(user_key(user_id), USERS_LIST_KEY)


def get_user_cache(request: Request) -> UserCache:
    """Dependency returning the application's user cache."""
    return request.app.state.user_cache
