"""Tests for the Redis-based rate limiter module."""
import time

from core.config import Settings
from core.rate_limit_config import RateLimitConfig
from core.rate_limiter import check_rate_limit, rate_limit_key
from core.redis import RedisClient

CONFIG = RateLimitConfig(max_requests=3, window_seconds=60)


class TestRateLimitConfig:
    """Tests for RateLimitConfig."""

    def test__from_settings__uses_configured_limits(self) -> None:
        """The policy comes straight from settings."""
        settings = Settings(
            _env_file=None,
            database_url="sqlite+aiosqlite://",
            rate_limit_requests=7,
            rate_limit_window_seconds=30,
        )

        assert RateLimitConfig.from_settings(settings) == RateLimitConfig(7, 30)


class TestCheckRateLimit:
    """Tests for check_rate_limit function."""

    async def test__check__allows_request_under_limit(
        self, redis_client: RedisClient,
    ) -> None:
        """Requests under the limit are allowed and count down remaining."""
        result = await check_rate_limit(redis_client, 1, CONFIG)

        assert result.allowed is True
        assert result.limit == 3
        assert result.remaining == 2
        assert result.retry_after == 0
        assert result.reset >= int(time.time())

    async def test__check__blocks_request_over_limit(
        self, redis_client: RedisClient,
    ) -> None:
        """The request after the limit is blocked with a retry delay."""
        for _ in range(CONFIG.max_requests):
            assert (await check_rate_limit(redis_client, 2, CONFIG)).allowed

        result = await check_rate_limit(redis_client, 2, CONFIG)

        assert result.allowed is False
        assert result.remaining == 0
        assert 0 < result.retry_after <= CONFIG.window_seconds

    async def test__check__clients_are_independent(
        self, redis_client: RedisClient,
    ) -> None:
        """One client exhausting its window does not affect another."""
        for _ in range(CONFIG.max_requests + 1):
            await check_rate_limit(redis_client, 3, CONFIG)

        result = await check_rate_limit(redis_client, 4, CONFIG)

        assert result.allowed is True

    async def test__check__uses_client_key(self, redis_client: RedisClient) -> None:
        """Each client has its own bucket key."""
        await check_rate_limit(redis_client, 5, CONFIG)

        assert rate_limit_key(5) == "rate:5:api"
        assert await redis_client._client.exists(rate_limit_key(5)) == 1

    async def test__check__fails_open_without_client(self) -> None:
        """No Redis client means requests are allowed."""
        result = await check_rate_limit(None, 1, CONFIG)

        assert result.allowed is True
        assert result.remaining == CONFIG.max_requests

    async def test__check__fails_open_when_disconnected(self) -> None:
        """A disconnected client also fails open."""
        client = RedisClient("redis://localhost:6379", enabled=False)
        await client.connect()

        result = await check_rate_limit(client, 1, CONFIG)

        assert result.allowed is True
