"""Shared exceptions for service layer operations."""


class UserNotFoundError(Exception):
    """Raised when a user ID does not exist in the store."""

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class DuplicateEmailError(Exception):
    """
    Raised when the unique email index rejects a write.

    Validation checks uniqueness up front; this covers the race where another
    request claims the same email between validation and flush.
    """

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"Email already taken: {email}")


class InvalidCredentialsError(Exception):
    """Raised when a login email/password pair does not match a user."""

    def __init__(self) -> None:
        super().__init__("Invalid Email or Password")


class InvalidTokenError(Exception):
    """Raised when a bearer token fails verification."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid token: {reason}")


class TokenCreationError(Exception):
    """Raised when a bearer token cannot be signed."""

    def __init__(self, message: str = "Could not create token") -> None:
        super().__init__(message)


class RequestValidationFailed(Exception):  # noqa: N818
    """
    Raised when request data fails its rule set.

    errors maps each failing field to a list of human-readable messages and is
    returned verbatim as the 400 response body.
    """

    def __init__(self, errors: dict[str, list[str]]) -> None:
        self.errors = errors
        super().__init__(f"Validation failed for: {', '.join(sorted(errors))}")
