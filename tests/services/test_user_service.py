"""Tests for the user service layer."""
from collections.abc import Awaitable, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User
from schemas.user import UserCreate, UserUpdate
from services import user_service
from services.exceptions import DuplicateEmailError, UserNotFoundError

MakeUser = Callable[..., Awaitable[User]]


def _create_data(**overrides: object) -> UserCreate:
    fields = {"name": "Ada", "email": "ada@example.com", "password": "secret123", "age": 36}
    fields.update(overrides)
    return UserCreate.model_validate(fields)


class TestCreateUser:
    """Tests for create_user."""

    async def test__create_user__stores_hash_and_returns_public_fields(
        self, db_session: AsyncSession,
    ) -> None:
        """The given hash is stored; the result has no password."""
        created = await user_service.create_user(db_session, _create_data(), "hashed-value")

        assert created.id is not None
        assert created.email == "ada@example.com"
        assert "password" not in created.model_dump()
        stored = await db_session.get(User, created.id)
        assert stored.password == "hashed-value"

    async def test__create_user__duplicate_email_raises(
        self, db_session: AsyncSession, make_user: MakeUser,
    ) -> None:
        """The unique index is translated to DuplicateEmailError."""
        await make_user(email="ada@example.com")

        with pytest.raises(DuplicateEmailError):
            await user_service.create_user(db_session, _create_data(), "hashed-value")

    async def test__create_user__duplicate_email_differing_in_case_raises(
        self, db_session: AsyncSession, make_user: MakeUser,
    ) -> None:
        """The store itself treats emails differing only in case as duplicates."""
        await make_user(email="Ada@Example.com")

        with pytest.raises(DuplicateEmailError):
            await user_service.create_user(db_session, _create_data(), "hashed-value")

    async def test__update_user__email_differing_in_case_raises(
        self, db_session: AsyncSession, make_user: MakeUser,
    ) -> None:
        """An update cannot slip a case variant of a taken email past the index."""
        await make_user(email="taken@example.com")
        other = await make_user(email="other@example.com")

        with pytest.raises(DuplicateEmailError):
            await user_service.update_user(
                db_session, other.id, UserUpdate.model_validate({"email": "TAKEN@example.com"}),
            )


class TestGetAndList:
    """Tests for get_user and list_users."""

    async def test__get_user__returns_projection(
        self, db_session: AsyncSession, make_user: MakeUser,
    ) -> None:
        """Only public fields are loaded."""
        user = await make_user(name="Grace")

        result = await user_service.get_user(db_session, user.id)

        assert result.name == "Grace"
        assert set(result.model_dump()) == {"id", "name", "email", "age", "membership_status"}

    async def test__get_user__missing_returns_none(self, db_session: AsyncSession) -> None:
        """Unknown IDs give None rather than raising."""
        assert await user_service.get_user(db_session, 12345) is None

    async def test__list_users__empty_store(self, db_session: AsyncSession) -> None:
        """An empty store still has one (empty) page."""
        page = await user_service.list_users(db_session, page=1, per_page=10)

        assert page.data == []
        assert page.total == 0
        assert page.last_page == 1

    async def test__list_users__page_math(
        self, db_session: AsyncSession, make_user: MakeUser,
    ) -> None:
        """last_page rounds up and items are ordered by ID."""
        users = [await make_user() for _ in range(5)]

        page = await user_service.list_users(db_session, page=2, per_page=2)

        assert page.total == 5
        assert page.last_page == 3
        assert [u.id for u in page.data] == [users[2].id, users[3].id]


class TestUpdateUser:
    """Tests for update_user."""

    async def test__update_user__writes_only_submitted_fields(
        self, db_session: AsyncSession, make_user: MakeUser,
    ) -> None:
        """Unset fields keep their values."""
        user = await make_user(name="Before", age=20)

        result = await user_service.update_user(
            db_session, user.id, UserUpdate.model_validate({"age": 21}),
        )

        assert result.name == "Before"
        assert result.age == 21

    async def test__update_user__sets_password_hash(
        self, db_session: AsyncSession, make_user: MakeUser,
    ) -> None:
        """The hash argument replaces the stored password; plaintext is ignored."""
        user = await make_user()

        await user_service.update_user(
            db_session,
            user.id,
            UserUpdate.model_validate({"password": "plaintext-value"}),
            password_hash="new-hash",
        )

        assert user.password == "new-hash"

    async def test__update_user__missing_raises(self, db_session: AsyncSession) -> None:
        """Unknown IDs raise UserNotFoundError."""
        with pytest.raises(UserNotFoundError):
            await user_service.update_user(db_session, 999, UserUpdate())


class TestDeleteUser:
    """Tests for delete_user."""

    async def test__delete_user__removes_row(
        self, db_session: AsyncSession, make_user: MakeUser,
    ) -> None:
        """Deleted users can no longer be read."""
        user = await make_user()

        await user_service.delete_user(db_session, user.id)

        assert await user_service.get_user(db_session, user.id) is None

    async def test__delete_user__missing_raises(self, db_session: AsyncSession) -> None:
        """Unknown IDs raise UserNotFoundError."""
        with pytest.raises(UserNotFoundError):
            await user_service.delete_user(db_session, 999)


class TestEmailLookups:
    """Tests for email_exists and get_user_credentials."""

    async def test__email_exists__case_insensitive(
        self, db_session: AsyncSession, make_user: MakeUser,
    ) -> None:
        """Case differences do not make an email unique."""
        await make_user(email="Mixed@Example.com")

        assert await user_service.email_exists(db_session, "mixed@example.com") is True
        assert await user_service.email_exists(db_session, "other@example.com") is False

    async def test__email_exists__excludes_given_user(
        self, db_session: AsyncSession, make_user: MakeUser,
    ) -> None:
        """A user's own email is ignored when excluded."""
        user = await make_user(email="self@example.com")

        assert await user_service.email_exists(
            db_session, "self@example.com", exclude_id=user.id,
        ) is False

    async def test__get_user_credentials__includes_hash(
        self, db_session: AsyncSession, make_user: MakeUser,
    ) -> None:
        """Credentials lookup loads the full row for login."""
        user = await make_user(email="login@example.com")

        result = await user_service.get_user_credentials(db_session, "login@example.com")

        assert result.id == user.id
        assert result.password.startswith("$2b$")
