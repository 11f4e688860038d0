"""Registration and login endpoints."""
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from api.dependencies import get_async_session, get_settings, get_user_cache
from core.config import Settings
from core.passwords import hash_password
from core.user_cache import USERS_LIST_KEY, UserCache
from core.validation import validate_payload
from schemas.user import ErrorResponse, MessageResponse, TokenResponse, UserCreate
from services import auth_service, user_service
from services.exceptions import InvalidCredentialsError

router = APIRouter(tags=["auth"])


@router.post(
    "/register",
    response_model=MessageResponse,
    status_code=201,
    responses={400: {"description": "Validation failed, body is {field: [messages]}"}},
)
async def register(
    payload: dict[str, Any] | None = Body(default=None),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
    cache: UserCache = Depends(get_user_cache),
) -> MessageResponse:
    """
    Register a new user.

    No token is issued; call /login afterwards.
    """
    data = await validate_payload(db, UserCreate, payload or {})
    password_hash = await run_in_threadpool(hash_password, data.password, settings.bcrypt_rounds)
    await user_service.create_user(db, data, password_hash)
    # Commit before invalidating so a concurrent read cannot re-cache the old listing
    await db.commit()
    await cache.invalidate(USERS_LIST_KEY)
    return MessageResponse(message="User created successfully")


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid Email or Password"},
        500: {"model": ErrorResponse, "description": "Could not create token"},
    },
)
async def login(
    payload: dict[str, Any] | None = Body(default=None),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> TokenResponse:
    """Exchange an email and password for a bearer token."""
    credentials = payload or {}
    email = credentials.get("email")
    password = credentials.get("password")
    if not isinstance(email, str) or not isinstance(password, str):
        raise InvalidCredentialsError

    token = await auth_service.attempt_login(db, email, password, settings)
    return TokenResponse(token=token)
