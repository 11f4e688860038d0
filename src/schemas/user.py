"""Pydantic schemas for user endpoints."""
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    ValidationInfo,
    field_validator,
)
from pydantic_core import PydanticCustomError

from core.passwords import MAX_PASSWORD_BYTES

NAME_MAX_LENGTH = 255
PASSWORD_MIN_LENGTH = 6
DEFAULT_PAGE_SIZE = 10
# Largest value the users.id and users.age INTEGER columns hold
MAX_INT = 2**31 - 1

# Surrounding whitespace is dropped, so a blank name counts as missing
Name = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=NAME_MAX_LENGTH),
]


def validate_password_bytes(password: str) -> str:
    """Reject passwords bcrypt would silently truncate."""
    if len(password.encode()) > MAX_PASSWORD_BYTES:
        raise PydanticCustomError(
            "password_too_long",
            "Password may not be greater than {max_bytes} bytes",
            {"max_bytes": MAX_PASSWORD_BYTES},
        )
    return password


class UserCreate(BaseModel):
    """Rule set for registration and admin-create."""

    name: Name
    # EmailStr also enforces the RFC length limit (254 characters)
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)
    age: int = Field(ge=0, le=MAX_INT)
    membership_status: str | None = Field(default=None, max_length=NAME_MAX_LENGTH)

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, v: str) -> str:
        """Validate password byte length."""
        return validate_password_bytes(v)


class UserUpdate(BaseModel):
    """
    Rule set for partial updates.

    Every field is optional. Omitted fields keep their stored value; fields that
    are sent may not be null, except membership_status.
    """

    name: Name | None = None
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=PASSWORD_MIN_LENGTH)
    age: int | None = Field(default=None, ge=0, le=MAX_INT)
    membership_status: str | None = Field(default=None, max_length=NAME_MAX_LENGTH)

    @field_validator("name", "email", "password", "age", mode="before")
    @classmethod
    def reject_null(cls, v: Any, info: ValidationInfo) -> Any:
        """Explicit null is only allowed for membership_status."""
        if v is None:
            raise PydanticCustomError(
                "not_nullable",
                "The {field} field may not be null",
                {"field": info.field_name},
            )
        return v

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, v: str | None) -> str | None:
        """Validate password byte length if provided."""
        if v is None:
            return None
        return validate_password_bytes(v)


class UserResponse(BaseModel):
    """Public user projection. The password hash is never part of it."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    age: int
    membership_status: str | None


class UserPage(BaseModel):
    """One page of the user listing."""

    data: list[UserResponse]
    current_page: int
    per_page: int
    total: int  # Total number of users across all pages
    last_page: int


class MessageResponse(BaseModel):
    """Plain success message."""

    message: str


class UserMessageResponse(MessageResponse):
    """Success message with the affected user."""

    user: UserResponse


class UserPageMessageResponse(MessageResponse):
    """Success message with a page of users."""

    users: UserPage


class TokenResponse(BaseModel):
    """Bearer token issued at login."""

    token: str


class ErrorResponse(BaseModel):
    """Error body for non-validation failures."""

    error: str
