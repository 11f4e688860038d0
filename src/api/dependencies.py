"""FastAPI dependencies for injection."""
from core.auth import PROTECTED_ROUTE_GUARDS, enforce_rate_limit, get_current_user_id
from core.config import get_settings
from core.redis import get_redis_client
from core.user_cache import get_user_cache
from db.session import get_async_session

__all__ = [
    "PROTECTED_ROUTE_GUARDS",
    "enforce_rate_limit",
    "get_async_session",
    "get_current_user_id",
    "get_redis_client",
    "get_settings",
    "get_user_cache",
]
