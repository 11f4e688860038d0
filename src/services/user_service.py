"""
Service layer for user records.

All reads that feed API responses select the public columns only; the password
hash is loaded solely by get_user_credentials for login.
"""
import logging
import math

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User
from schemas.user import UserCreate, UserPage, UserResponse, UserUpdate
from services.exceptions import DuplicateEmailError, UserNotFoundError

logger = logging.getLogger(__name__)

PUBLIC_COLUMNS = (User.id, User.name, User.email, User.age, User.membership_status)


async def create_user(
    db: AsyncSession,
    data: UserCreate,
    password_hash: str,
) -> UserResponse:
    """
    Insert a new user.

    Args:
        db: Database session.
        data: Validated user fields.
        password_hash: bcrypt hash of data.password.

    Returns:
        The public projection of the new user.

    Raises:
        DuplicateEmailError: If the email is already taken.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    user = User(
        name=data.name,
        email=data.email,
        password=password_hash,
        age=data.age,
        membership_status=data.membership_status,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as e:
        # Another request claimed the email between validation and insert
        await db.rollback()
        raise DuplicateEmailError(data.email) from e

    logger.info("user_created", extra={"user_id": user.id})
    return UserResponse.model_validate(user)


async def get_user(db: AsyncSession, user_id: int) -> UserResponse | None:
    """Get a user's public projection by ID, or None if not found."""
    result = await db.execute(select(*PUBLIC_COLUMNS).where(User.id == user_id))
    row = result.one_or_none()
    if row is None:
        return None
    return UserResponse.model_validate(dict(row._mapping))


async def list_users(db: AsyncSession, page: int, per_page: int) -> UserPage:
    """
    Get one page of users ordered by ID.

    Args:
        db: Database session.
        page: 1-based page number.
        per_page: Page size.

    Returns:
        UserPage with the page items and the total user count.
    """
    total = await db.scalar(select(func.count()).select_from(User)) or 0
    result = await db.execute(
        select(*PUBLIC_COLUMNS)
        .order_by(User.id)
        .offset((page - 1) * per_page)
        .limit(per_page),
    )
    items = [UserResponse.model_validate(dict(row._mapping)) for row in result]
    return UserPage(
        data=items,
        current_page=page,
        per_page=per_page,
        total=total,
        last_page=max(1, math.ceil(total / per_page)),
    )


async def update_user(
    db: AsyncSession,
    user_id: int,
    data: UserUpdate,
    password_hash: str | None = None,
) -> UserResponse:
    """
    Apply a partial update.

    Only fields present in the request are written; everything else keeps its
    stored value. The plaintext password in data is ignored - pass its hash.

    Raises:
        UserNotFoundError: If the user does not exist.
        DuplicateEmailError: If the new email is already taken.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    changes = data.model_dump(exclude_unset=True, exclude={"password"})
    for field, value in changes.items():
        setattr(user, field, value)
    if password_hash is not None:
        user.password = password_hash

    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateEmailError(changes.get("email", "")) from e

    logger.info("user_updated", extra={"user_id": user_id, "fields": sorted(changes)})
    return UserResponse.model_validate(user)


async def delete_user(db: AsyncSession, user_id: int) -> None:
    """
    Delete a user.

    Raises:
        UserNotFoundError: If the user does not exist.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    await db.delete(user)
    await db.flush()
    logger.info("user_deleted", extra={"user_id": user_id})


async def email_exists(
    db: AsyncSession,
    email: str,
    exclude_id: int | None = None,
) -> bool:
    """
    Check whether an email is registered (case-insensitive).

    Args:
        db: Database session.
        email: Email to look up.
        exclude_id: User ID to ignore, so an update can keep its own email.
    """
    query = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


async def get_user_credentials(db: AsyncSession, email: str) -> User | None:
    """Load the full user row (including password hash) for a login attempt."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()
