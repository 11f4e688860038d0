"""
Request validation for user writes.

Rule sets are pydantic models (schemas/user.py). Failures are reported as a
mapping of field name to human-readable messages, which handlers return
verbatim with HTTP 400. The store-backed email uniqueness rule runs here as
well, only reading from the database.
"""
from collections.abc import Sequence
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from services import user_service
from services.exceptions import RequestValidationFailed

EMAIL_TAKEN_MESSAGE = "The email has already been taken."

# FastAPI prefixes error locations with where the value came from
_REQUEST_LOCATIONS = {"body", "query", "path", "header", "cookie"}

ModelT = TypeVar("ModelT", bound=BaseModel)


def error_field(loc: Sequence[Any]) -> str:
    """Field name for an error location, e.g. ("body", "email") -> "email"."""
    parts = list(loc)
    if parts and parts[0] in _REQUEST_LOCATIONS:
        source = parts.pop(0)
        # Errors about the whole body (e.g. invalid JSON) carry no field name
        if not parts or not isinstance(parts[0], str):
            return source
    return str(parts[0]) if parts else "body"


def error_map(errors: Sequence[Any]) -> dict[str, list[str]]:
    """Group pydantic/FastAPI error dicts into {field: [messages]}."""
    result: dict[str, list[str]] = {}
    for error in errors:
        field = error_field(error.get("loc", ()))
        result.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return result


async def validate_payload(
    db: AsyncSession,
    rules: type[ModelT],
    payload: dict[str, Any],
    exclude_id: int | None = None,
) -> ModelT:
    """
    Validate raw request data against a rule set.

    All field rules are evaluated, then email uniqueness is checked against the
    store when an email was submitted and passed its own rules.

    Args:
        db: Database session (read only).
        rules: Pydantic model describing the rule set.
        payload: Raw request body.
        exclude_id: User ID ignored by the uniqueness rule (updates).

    Returns:
        The validated model.

    Raises:
        RequestValidationFailed: With the {field: [messages]} error map.
    """
    data: ModelT | None = None
    errors: dict[str, list[str]] = {}
    try:
        data = rules.model_validate(payload)
    except ValidationError as e:
        errors = error_map(e.errors())

    submitted_email = payload.get("email")
    if "email" not in errors and isinstance(submitted_email, str):
        email = getattr(data, "email", None) or submitted_email
        if await user_service.email_exists(db, email, exclude_id=exclude_id):
            errors.setdefault("email", []).append(EMAIL_TAKEN_MESSAGE)

    if errors or data is None:
        raise RequestValidationFailed(errors)
    return data
