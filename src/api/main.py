"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import auth, health, users
from core.config import get_settings
from core.rate_limit_config import RateLimitExceededError
from core.redis import RedisClient
from core.user_cache import UserCache
from core.validation import EMAIL_TAKEN_MESSAGE, error_map
from services.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    RequestValidationFailed,
    TokenCreationError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    # Startup: Connect to Redis (the client falls back to a no-op when unreachable)
    await app.state.redis_client.connect()

    yield

    # Shutdown: Close the Redis pool
    await app.state.redis_client.close()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        # HSTS: enforce HTTPS for 1 year, including subdomains
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking - API shouldn't be framed
        response.headers["X-Frame-Options"] = "DENY"
        return response


class RateLimitHeadersMiddleware(BaseHTTPMiddleware):
    """Add rate limit headers to successful responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add rate limit headers to response."""
        response = await call_next(request)

        # Add headers if rate limit info was stored by the guard
        # Note: 429 responses are handled by exception handler, not middleware
        info = getattr(request.state, "rate_limit_info", None)
        if info:
            response.headers["X-RateLimit-Limit"] = str(info["limit"])
            response.headers["X-RateLimit-Remaining"] = str(info["remaining"])
            response.headers["X-RateLimit-Reset"] = str(info["reset"])

        return response


app_settings = get_settings()

logging.basicConfig(
    level=app_settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(
    title="Users API",
    description="User registration, token login and user management.",
    version="0.1.0",
    lifespan=lifespan,
)

# Shared clients live on app.state so dependencies can reach them per request
app.state.redis_client = RedisClient(
    url=app_settings.redis_url,
    enabled=app_settings.redis_enabled,
    pool_size=app_settings.redis_pool_size,
)
app.state.user_cache = UserCache(app.state.redis_client, ttl=app_settings.cache_ttl_seconds)


def error_response(
    status_code: int, message: str, headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the {"error": message} body used for non-validation failures."""
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


@app.exception_handler(RequestValidationFailed)
async def validation_failed_handler(
    _request: Request, exc: RequestValidationFailed,
) -> JSONResponse:
    """Return the field error map with 400."""
    return JSONResponse(status_code=400, content=exc.errors)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    """
    Report malformed requests (bad JSON, bad query values) as a 400 field map.

    A non-integer or out-of-range user ID in the path cannot identify a user, so it is reported
    as a missing user rather than a validation failure.
    """
    errors = exc.errors()
    if any(error.get("loc", ())[:1] == ("path",) for error in errors):
        return error_response(404, "User not found")
    logger.debug("request_validation_failed path=%s", request.url.path)
    return JSONResponse(status_code=400, content=error_map(errors))


@app.exception_handler(UserNotFoundError)
async def user_not_found_handler(
    _request: Request, _exc: UserNotFoundError,
) -> JSONResponse:
    """Return 404 for unknown user IDs."""
    return error_response(404, "User not found")


@app.exception_handler(DuplicateEmailError)
async def duplicate_email_handler(
    _request: Request, _exc: DuplicateEmailError,
) -> JSONResponse:
    """Report a unique-index conflict the same way as the up-front email check."""
    return JSONResponse(status_code=400, content={"email": [EMAIL_TAKEN_MESSAGE]})


@app.exception_handler(InvalidCredentialsError)
async def invalid_credentials_handler(
    _request: Request, exc: InvalidCredentialsError,
) -> JSONResponse:
    """Return 401 for a failed login."""
    return error_response(401, str(exc), headers={"WWW-Authenticate": "Bearer"})


@app.exception_handler(TokenCreationError)
async def token_creation_handler(
    _request: Request, exc: TokenCreationError,
) -> JSONResponse:
    """Return 500 when a token could not be signed."""
    return error_response(500, str(exc))


@app.exception_handler(RateLimitExceededError)
async def rate_limit_exception_handler(
    _request: Request, exc: RateLimitExceededError,
) -> JSONResponse:
    """Handle rate limit exceeded with proper headers."""
    return error_response(
        429,
        "Too many requests. Please try again later.",
        headers={
            "Retry-After": str(exc.result.retry_after),
            "X-RateLimit-Limit": str(exc.result.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(exc.result.reset),
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    _request: Request, exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Render framework HTTP errors as {"error": ...}.

    Unmatched paths and methods both answer 404 "Route not found".
    """
    if exc.status_code in (404, 405):
        return error_response(404, "Route not found")
    return error_response(exc.status_code, str(exc.detail), headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception,
) -> JSONResponse:
    """Log unexpected failures and answer with a JSON 500 instead of a stack trace."""
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path},
    )
    return error_response(500, "Internal server error")


# Rate limit headers middleware (runs first, adds headers to successful responses)
app.add_middleware(RateLimitHeadersMiddleware)

# Security headers middleware (runs after CORS, adds headers to responses)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router, prefix=app_settings.api_prefix)
app.include_router(users.router, prefix=app_settings.api_prefix)
