"""Redis client with connection pooling and graceful fallback."""
import logging

from fastapi import Request
from redis.asyncio import Redis
from redis.exceptions import NoScriptError, RedisError

logger = logging.getLogger(__name__)

# Lua script for sliding window rate limiting
# More accurate than fixed window - prevents gaming at window boundaries
SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
local request_id = ARGV[4]

-- Remove old entries outside the window
redis.call('ZREMRANGEBYSCORE', key, 0, now - window)

-- Count current entries
local count = redis.call('ZCARD', key)

if count < limit then
    -- Add new entry with UUID suffix to prevent collisions
    redis.call('ZADD', key, now, now .. ':' .. request_id)
    redis.call('EXPIRE', key, window)
    return {1, limit - count - 1, 0}  -- allowed, remaining, no retry needed
else
    -- Get oldest entry for retry-after calculation
    local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
    local retry_after = 0
    if oldest and oldest[2] then
        retry_after = math.ceil((oldest[2] + window) - now)
    end
    return {0, 0, retry_after}  -- denied, 0 remaining, retry after
end
"""


class RedisClient:
    """Async Redis client with connection pooling and graceful fallback."""

    def __init__(self, url: str, enabled: bool = True, pool_size: int = 20) -> None:
        self._url = url
        self._enabled = enabled
        self._pool_size = pool_size
        self._client: Redis | None = None
        self._sliding_window_sha: str | None = None

    async def connect(self) -> None:
        """Initialize connection pool and load Lua scripts."""
        if not self._enabled:
            logger.info("Redis disabled by configuration")
            return
        try:
            self._client = Redis.from_url(self._url, max_connections=self._pool_size)
            # Verify connection
            await self._client.ping()
            await self._load_scripts()
            logger.info("Redis connected successfully")
        except RedisError as e:
            logger.warning("Redis connection failed: %s", e)
            self._client = None

    async def _load_scripts(self) -> None:
        """Load Lua scripts and store their SHAs for evalsha calls."""
        if not self._client:
            return
        try:
            self._sliding_window_sha = await self._client.script_load(SLIDING_WINDOW_SCRIPT)
            logger.info("Redis Lua scripts loaded")
        except RedisError as e:
            logger.warning("Failed to load Lua scripts: %s", e)

    async def close(self) -> None:
        """Close connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")

    @property
    def is_connected(self) -> bool:
        """Check if client is connected."""
        return self._client is not None

    @property
    def sliding_window_sha(self) -> str | None:
        """Get SHA for sliding window script."""
        return self._sliding_window_sha

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        if not self._client:
            return False
        try:
            return await self._client.ping()
        except RedisError:
            return False

    async def get(self, key: str) -> bytes | None:
        """Get value, returns None if Redis unavailable."""
        if not self._client:
            return None
        try:
            return await self._client.get(key)
        except RedisError as e:
            logger.warning("Redis GET failed: %s", e)
            return None

    async def setex(self, key: str, seconds: int, value: str | bytes) -> bool:
        """Set value with expiry, returns False if Redis unavailable."""
        if not self._client:
            return False
        try:
            await self._client.setex(key, seconds, value)
            return True
        except RedisError as e:
            logger.warning("Redis SETEX failed: %s", e)
            return False

    async def delete(self, *keys: str) -> bool:
        """Delete key(s), returns False if Redis unavailable."""
        if not self._client:
            return False
        try:
            await self._client.delete(*keys)
            return True
        except RedisError as e:
            logger.warning("Redis DELETE failed: %s", e)
            return False

    async def eval_sliding_window(
        self,
        key: str,
        now: int,
        window_seconds: int,
        max_requests: int,
        request_id: str,
    ) -> list[int] | None:
        """
        Execute sliding window rate limit script with automatic script reload.

        Handles NOSCRIPT errors by reloading scripts and retrying once.

        Args:
            key: Redis key for this rate limit bucket
            now: Current Unix timestamp
            window_seconds: Window size in seconds
            max_requests: Maximum requests allowed in window
            request_id: Unique ID for this request (prevents collisions)

        Returns:
            [allowed, remaining, retry_after] or None if Redis unavailable
        """
        # SHA is None when scripts could not be loaded (Redis down at startup or a
        # failed reload). Fail open by returning None.
        if not self._client or self._sliding_window_sha is None:
            return None

        args = (key, now, window_seconds, max_requests, request_id)
        try:
            return await self._client.evalsha(self._sliding_window_sha, 1, *args)
        except NoScriptError:
            # Redis restarted, scripts need reloading
            logger.warning("redis_script_reload", extra={"script": "sliding_window"})
            await self._load_scripts()
            if self._sliding_window_sha is None:
                return None
            try:
                return await self._client.evalsha(self._sliding_window_sha, 1, *args)
            except RedisError as e:
                logger.warning("Redis sliding window retry failed: %s", e)
                return None
        except RedisError as e:
            logger.warning("Redis sliding window failed: %s", e)
            return None


def get_redis_client(request: Request) -> RedisClient | None:
    """Dependency returning the application's Redis client."""
    return getattr(request.app.state, "redis_client", None)
