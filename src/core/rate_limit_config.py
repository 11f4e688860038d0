"""
Rate limiting configuration and types.

This module contains the policy for rate limiting - the "what" limits to apply,
separate from the "how" (enforcement logic in rate_limiter.py).

Protected routes share one policy: a fixed number of requests per sliding
window per authenticated client, both taken from Settings.
"""
from dataclasses import dataclass

from core.config import Settings


@dataclass
class RateLimitConfig:
    """Rate limit configuration for protected routes."""

    max_requests: int
    window_seconds: int

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimitConfig":
        """Build the policy from application settings."""
        return cls(
            max_requests=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )


@dataclass
class RateLimitResult:
    """Result of a rate limit check with all info needed for headers."""

    allowed: bool
    limit: int  # Max requests in current window
    remaining: int  # Requests remaining in current window
    reset: int  # Unix timestamp when window resets
    retry_after: int  # Seconds until retry allowed (0 if allowed)


class RateLimitExceededError(Exception):
    """Raised when rate limit is exceeded."""

    def __init__(self, result: RateLimitResult) -> None:
        self.result = result
        super().__init__("Rate limit exceeded")
