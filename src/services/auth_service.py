"""Service layer for login."""
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from core.config import Settings
from core.passwords import verify_password
from core.tokens import issue_token
from services import user_service
from services.exceptions import InvalidCredentialsError

logger = logging.getLogger(__name__)


async def attempt_login(
    db: AsyncSession,
    email: str,
    password: str,
    settings: Settings,
) -> str:
    """
    Check an email/password pair and issue a bearer token.

    Args:
        db: Database session.
        email: Login email.
        password: Plaintext password.
        settings: Application settings (token signing).

    Returns:
        A signed bearer token for the user.

    Raises:
        InvalidCredentialsError: If no user has this email or the password is wrong.
        TokenCreationError: If the token cannot be signed.
    """
    user = await user_service.get_user_credentials(db, email)
    if user is None or not await run_in_threadpool(verify_password, password, user.password):
        logger.info("login_failed", extra={"user_found": user is not None})
        raise InvalidCredentialsError

    token = issue_token(user.id, settings)
    logger.info("login_succeeded", extra={"user_id": user.id})
    return token
