"""User model."""

import re
from datetime import datetime
from enum import Enum

from pydantic import EmailStr, field_validator, model_validator
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from passgate.models.base import TimestampMixin, generate_nanoid

# bcrypt only looks at the first 72 bytes of its input
PASSWORD_MAX_LENGTH = 72
PASSWORD_MIN_LENGTH = 8
PASSWORD_SYMBOLS = "@$!%*#?&"

_PASSWORD_RULES = (
    re.compile(r"[A-Za-z]"),
    re.compile(r"\d"),
    re.compile(f"[{re.escape(PASSWORD_SYMBOLS)}]"),
)


class UserRole(str, Enum):
    """Account role."""

    USER = "user"
    ADMIN = "admin"
    MODERATOR = "moderator"


def normalize_email(email: str) -> str:
    """Lower-case and trim an email address."""
    return email.strip().lower()


def check_password_strength(password: str) -> str:
    """Require a letter, a digit and one of the allowed symbols."""
    if not all(rule.search(password) for rule in _PASSWORD_RULES):
        raise ValueError(
            "Password must contain at least one letter, one number "
            f"and one symbol ({PASSWORD_SYMBOLS})"
        )
    if len(password.encode("utf-8")) > PASSWORD_MAX_LENGTH:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_LENGTH} bytes")
    return password


class User(TimestampMixin, SQLModel, table=True):
    """User account model."""

    __tablename__ = "users"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    email: str = Field(unique=True, index=True, max_length=255)
    password_hash: str = Field(max_length=255)
    first_name: str = Field(max_length=50)
    last_name: str = Field(max_length=50)
    bio: str | None = Field(default=None, max_length=500)
    role: UserRole = Field(default=UserRole.USER)
    is_email_verified: bool = Field(default=False)

    # Email verification
    email_verification_token: str | None = Field(default=None, index=True, max_length=64)
    email_verification_token_expires: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )

    # Password reset
    password_reset_token: str | None = Field(default=None, index=True, max_length=64)
    password_reset_token_expires: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )


class UserCreate(SQLModel):
    """Schema for registering a user."""

    email: EmailStr = Field(max_length=255)
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    role: UserRole = UserRole.USER

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: object) -> object:
        return normalize_email(value) if isinstance(value, str) else value

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _strip_names(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def _check_password(cls, value: str) -> str:
        return check_password_strength(value)


class UserUpdate(SQLModel):
    """Schema for updating a user profile.

    Role and credentials are not part of this schema; unknown keys are ignored.
    """

    email: EmailStr | None = Field(default=None, max_length=255)
    first_name: str | None = Field(default=None, min_length=2, max_length=50)
    last_name: str | None = Field(default=None, min_length=2, max_length=50)
    bio: str | None = Field(default=None, max_length=500)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: object) -> object:
        return normalize_email(value) if isinstance(value, str) else value

    @field_validator("first_name", "last_name", "bio", mode="before")
    @classmethod
    def _strip_text(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", "first_name", "last_name")
    @classmethod
    def _reject_null(cls, value: str | None) -> str:
        # Only bio may be cleared
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @model_validator(mode="after")
    def _require_one_field(self) -> "UserUpdate":
        if not self.model_dump(exclude_unset=True):
            raise ValueError("Provide at least one field to update")
        return self


class UserRead(SQLModel):
    """Schema for reading a user."""

    id: str
    email: str
    first_name: str
    last_name: str
    bio: str | None
    role: UserRole
    is_email_verified: bool
    created_at: datetime
    updated_at: datetime
