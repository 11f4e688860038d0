"""User model for registered accounts."""
from sqlalchemy import Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """
    User model - a registered account.

    The password column only ever holds a bcrypt hash. Reads that feed API
    responses select the public columns explicitly (see services.user_service).
    Emails are unique regardless of case (ix_users_email_lower below); the
    stored value keeps the case it was registered with.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255))
    password: Mapped[str] = mapped_column(String(255), comment="bcrypt hash")
    age: Mapped[int] = mapped_column(Integer)
    membership_status: Mapped[str | None] = mapped_column(String(255), nullable=True)


# Serves the case-insensitive uniqueness rule and login lookup
Index("ix_users_email_lower", func.lower(User.email), unique=True)
