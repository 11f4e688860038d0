"""
Redis-based rate limiting enforcement.

This module contains the enforcement logic - the "how" of rate limiting.
For configuration, see rate_limit_config.py.
"""
import logging
import time
import uuid

from core.rate_limit_config import RateLimitConfig, RateLimitResult
from core.redis import RedisClient

logger = logging.getLogger(__name__)


def rate_limit_key(client_id: str | int) -> str:
    """Redis key for a client's sliding window bucket."""
    return f"rate:{client_id}:api"


async def check_rate_limit(
    redis_client: RedisClient | None,
    client_id: str | int,
    config: RateLimitConfig,
) -> RateLimitResult:
    """
    Check if request is allowed and return full rate limit info.

    Returns RateLimitResult with allowed status and header values.
    Falls back to allowing requests if Redis is unavailable.
    """
    if redis_client is None or not redis_client.is_connected:
        logger.warning("redis_unavailable", extra={"operation": "rate_limit"})
        return _fail_open(config)

    now = int(time.time())
    result = await redis_client.eval_sliding_window(
        key=rate_limit_key(client_id),
        now=now,
        window_seconds=config.window_seconds,
        max_requests=config.max_requests,
        request_id=str(uuid.uuid4()),
    )
    if result is None:
        return _fail_open(config)

    allowed, remaining, retry_after = result
    if not allowed:
        logger.warning(
            "rate_limit_exceeded",
            extra={"client_id": client_id, "limit": config.max_requests},
        )
    return RateLimitResult(
        allowed=bool(allowed),
        limit=config.max_requests,
        remaining=max(0, remaining),
        reset=now + config.window_seconds,
        retry_after=max(0, retry_after) if not allowed else 0,
    )


def _fail_open(config: RateLimitConfig) -> RateLimitResult:
    """Permissive result used when Redis cannot be consulted."""
    return RateLimitResult(
        allowed=True,
        limit=config.max_requests,
        remaining=config.max_requests,
        reset=0,
        retry_after=0,
    )
