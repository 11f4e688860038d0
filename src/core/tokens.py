"""
Bearer token issuing and verification.

Tokens are HS256 JWTs carrying the user ID in the ``sub`` claim plus ``iat`` and
``exp``. They are self-contained: verification needs only the shared secret,
never a database lookup.
"""
import logging
from datetime import UTC, datetime, timedelta

import jwt

from core.config import Settings
from services.exceptions import InvalidTokenError, TokenCreationError

logger = logging.getLogger(__name__)


def issue_token(user_id: int, settings: Settings) -> str:
    """
    Create a signed token for a user.

    Raises:
        TokenCreationError: If the token cannot be signed (e.g. bad algorithm or key).
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_ttl_minutes),
    }
    try:
        return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    except (jwt.PyJWTError, NotImplementedError, TypeError, ValueError) as e:
        logger.error("Failed to sign token: %s", e, exc_info=True)
        raise TokenCreationError from e


def verify_token(token: str, settings: Settings) -> int:
    """
    Verify a token and return the user ID it was issued for.

    Raises:
        InvalidTokenError: reason is "expired" for an expired token, "invalid" for
            anything else (bad signature, malformed, missing or non-numeric sub).
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenError("expired") from e
    except jwt.PyJWTError as e:
        logger.debug("JWT validation failed: %s", e)
        raise InvalidTokenError("invalid") from e

    try:
        return int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise InvalidTokenError("invalid") from e
