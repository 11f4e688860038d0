"""
Guards for protected routes: bearer token authentication, then rate limiting.

PROTECTED_ROUTE_GUARDS is the ordered guard list attached to protected routers.
Each guard either lets the request proceed or raises, which short-circuits the
request before the handler body runs.
"""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import Settings, get_settings
from core.rate_limit_config import RateLimitConfig, RateLimitExceededError
from core.rate_limiter import check_rate_limit
from core.redis import RedisClient, get_redis_client
from core.tokens import verify_token
from services.exceptions import InvalidTokenError

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> int:
    """
    Dependency that validates the bearer token and returns the user ID it carries.

    Tokens are self-contained, so no database lookup happens here.

    Raises:
        HTTPException: 401 if the token is missing, malformed, tampered with or expired.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return verify_token(credentials.credentials, settings)
    except InvalidTokenError as e:
        detail = "Token has expired" if e.reason == "expired" else "Invalid token"
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def enforce_rate_limit(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
    redis_client: RedisClient | None = Depends(get_redis_client),
) -> None:
    """
    Dependency that applies the per-client rate limit.

    Runs after authentication (it depends on get_current_user_id), so clients are
    identified by their user ID. Stores header info on request.state for
    RateLimitHeadersMiddleware.

    Raises:
        RateLimitExceededError: When the client has used up its window.
    """
    result = await check_rate_limit(
        redis_client, user_id, RateLimitConfig.from_settings(settings),
    )
    if not result.allowed:
        raise RateLimitExceededError(result)

    request.state.rate_limit_info = {
        "limit": result.limit,
        "remaining": result.remaining,
        "reset": result.reset,
    }


PROTECTED_ROUTE_GUARDS = [Depends(get_current_user_id), Depends(enforce_rate_limit)]
