"""User CRUD endpoints (bearer token + rate limit protected)."""
from typing import Any

from fastapi import APIRouter, Body, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from api.dependencies import (
    PROTECTED_ROUTE_GUARDS,
    get_async_session,
    get_settings,
    get_user_cache,
)
from core.config import Settings
from core.passwords import hash_password
from core.user_cache import USERS_LIST_KEY, UserCache, user_key
from core.validation import validate_payload
from schemas.user import (
    DEFAULT_PAGE_SIZE,
    MAX_INT,
    ErrorResponse,
    MessageResponse,
    UserCreate,
    UserMessageResponse,
    UserPage,
    UserPageMessageResponse,
    UserResponse,
    UserUpdate,
)
from services import user_service
from services.exceptions import UserNotFoundError

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=PROTECTED_ROUTE_GUARDS,
    responses={
        401: {"model": ErrorResponse, "description": "Missing, invalid or expired token"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    },
)

NOT_FOUND_RESPONSE = {404: {"model": ErrorResponse, "description": "User not found"}}


@router.get("", response_model=UserPageMessageResponse)
async def list_users(
    page: int = Query(default=1, ge=1, le=MAX_INT),
    db: AsyncSession = Depends(get_async_session),
    cache: UserCache = Depends(get_user_cache),
) -> UserPageMessageResponse:
    """
    List users, ten per page, ordered by ID.

    Page 1 is served through the read cache; later pages are read directly.
    """
    async def load_page() -> dict[str, Any]:
        result = await user_service.list_users(db, page, DEFAULT_PAGE_SIZE)
        return result.model_dump()

    if page == 1:
        users = await cache.get_or_compute(USERS_LIST_KEY, load_page)
    else:
        users = await load_page()
    return UserPageMessageResponse(
        message="Users retrieved successfully",
        users=UserPage.model_validate(users),
    )


@router.get("/{user_id}", response_model=UserMessageResponse, responses=NOT_FOUND_RESPONSE)
async def get_user(
    user_id: int = Path(ge=1, le=MAX_INT),
    db: AsyncSession = Depends(get_async_session),
    cache: UserCache = Depends(get_user_cache),
) -> UserMessageResponse:
    """
    Get a single user.

    IDs outside the column range cannot exist and are answered with 404.
    """
    async def load_user() -> dict[str, Any] | None:
        user = await user_service.get_user(db, user_id)
        return user.model_dump() if user else None

    data = await cache.get_or_compute(user_key(user_id), load_user)
    if data is None:
        raise UserNotFoundError(user_id)
    return UserMessageResponse(
        message="User retrieved successfully",
        user=UserResponse.model_validate(data),
    )


@router.post("", response_model=UserMessageResponse, status_code=201)
async def create_user(
    payload: dict[str, Any] | None = Body(default=None),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
    cache: UserCache = Depends(get_user_cache),
) -> UserMessageResponse:
    """Create a user. The response never includes the password."""
    data = await validate_payload(db, UserCreate, payload or {})
    password_hash = await run_in_threadpool(hash_password, data.password, settings.bcrypt_rounds)
    user = await user_service.create_user(db, data, password_hash)
    # Commit before invalidating so a concurrent read cannot re-cache old rows
    await db.commit()
    await cache.invalidate(USERS_LIST_KEY)
    return UserMessageResponse(message="User created successfully", user=user)


@router.put("/{user_id}", response_model=UserMessageResponse, responses=NOT_FOUND_RESPONSE)
async def update_user(
    user_id: int = Path(ge=1, le=MAX_INT),
    payload: dict[str, Any] | None = Body(default=None),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
    cache: UserCache = Depends(get_user_cache),
) -> UserMessageResponse:
    """
    Partially update a user.

    Fields missing from the body keep their stored values. A submitted email must
    not belong to another user; a submitted password is re-hashed.
    """
    if await user_service.get_user(db, user_id) is None:
        raise UserNotFoundError(user_id)

    data = await validate_payload(db, UserUpdate, payload or {}, exclude_id=user_id)
    password_hash = None
    if data.password is not None:
        password_hash = await run_in_threadpool(
            hash_password, data.password, settings.bcrypt_rounds,
        )
    user = await user_service.update_user(db, user_id, data, password_hash)
    await db.commit()
    await cache.invalidate_user(user_id)
    return UserMessageResponse(message="User updated successfully", user=user)


@router.delete("/{user_id}", response_model=MessageResponse, responses=NOT_FOUND_RESPONSE)
async def delete_user(
    user_id: int = Path(ge=1, le=MAX_INT),
    db: AsyncSession = Depends(get_async_session),
    cache: UserCache = Depends(get_user_cache),
) -> MessageResponse:
    """Delete a user."""
    await user_service.delete_user(db, user_id)
    await db.commit()
    await cache.invalidate_user(user_id)
    return MessageResponse(message="User deleted successfully")
