"""User record storage.

``UserStore`` is the persistence contract the account services depend on.
``SQLUserStore`` implements it on an async SQLAlchemy session. Token
redemption is a single conditional UPDATE so two concurrent redemptions of
the same token cannot both succeed.
"""

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from passgate.models import User, utcnow
from passgate.models.user import normalize_email

# Fields callers may not change through ``update``
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


def is_duplicate_email(error: IntegrityError) -> bool:
    """Whether ``error`` is the unique constraint on ``users.email``.

    The asyncpg driver error is chained as the cause of the DBAPI error.
    """
    orig = error.orig
    cause = getattr(orig, "__cause__", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(cause, "sqlstate", None)
    if sqlstate != UNIQUE_VIOLATION:
        return False
    constraint = getattr(cause, "constraint_name", None) or str(orig)
    return "email" in constraint


class DuplicateEmailError(Exception):
    """Another user already has this email address."""

    pass


class UserStore(Protocol):
    async def find_by_email(self, email: str) -> User | None: ...

    async def find_by_id(self, user_id: str) -> User | None: ...

    async def create(self, user: User) -> User: ...

    async def update(self, user_id: str, fields: dict[str, Any]) -> User | None: ...

    async def delete(self, user_id: str) -> User | None: ...

    async def find_by_verification_token(self, value: str, now: datetime) -> User | None: ...

    async def find_by_reset_token(self, value: str, now: datetime) -> User | None: ...

    async def consume_verification_token(self, value: str, now: datetime) -> User | None:
        """Mark the matching unexpired token's owner verified and clear the token."""
        ...

    async def consume_reset_token(
        self, value: str, password_hash: str, now: datetime
    ) -> User | None:
        """Replace the matching unexpired token owner's password hash and clear the token."""
        ...

    async def list_users(self, offset: int, limit: int) -> tuple[list[User], int]: ...


class SQLUserStore:
    """UserStore backed by the ``users`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == normalize_email(email))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: str) -> User | None:
        return await self.session.get(User, user_id)

    async def create(self, user: User) -> User:
        user.email = normalize_email(user.email)
        self.session.add(user)
        await self._commit()
        return user

    async def update(self, user_id: str, fields: dict[str, Any]) -> User | None:
        user = await self.session.get(User, user_id)
        if user is None:
            return None

        for key, value in fields.items():
            if key in IMMUTABLE_FIELDS:
                raise ValueError(f"Field {key!r} cannot be updated")
            if key == "email" and value is not None:
                value = normalize_email(value)
            setattr(user, key, value)
        user.updated_at = utcnow()

        await self._commit()
        return user

    async def delete(self, user_id: str) -> User | None:
        user = await self.session.get(User, user_id)
        if user is None:
            return None
        await self.session.delete(user)
        await self.session.commit()
        return user

    async def find_by_verification_token(self, value: str, now: datetime) -> User | None:
        if not value:
            return None
        stmt = select(User).where(
            User.email_verification_token == value,
            User.email_verification_token_expires > now,  # type: ignore[operator]
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_reset_token(self, value: str, now: datetime) -> User | None:
        if not value:
            return None
        stmt = select(User).where(
            User.password_reset_token == value,
            User.password_reset_token_expires > now,  # type: ignore[operator]
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def consume_verification_token(self, value: str, now: datetime) -> User | None:
        if not value:
            return None
        stmt = (
            update(User)
            .where(
                User.email_verification_token == value,  # type: ignore[arg-type]
                User.email_verification_token_expires > now,  # type: ignore[operator]
            )
            .values(
                is_email_verified=True,
                email_verification_token=None,
                email_verification_token_expires=None,
                updated_at=now,
            )
            .returning(User)
        )
        return await self._execute_returning(stmt)

    async def consume_reset_token(
        self, value: str, password_hash: str, now: datetime
    ) -> User | None:
        if not value:
            return None
        stmt = (
            update(User)
            .where(
                User.password_reset_token == value,  # type: ignore[arg-type]
                User.password_reset_token_expires > now,  # type: ignore[operator]
            )
            .values(
                password_hash=password_hash,
                password_reset_token=None,
                password_reset_token_expires=None,
                updated_at=now,
            )
            .returning(User)
        )
        return await self._execute_returning(stmt)

    async def list_users(self, offset: int, limit: int) -> tuple[list[User], int]:
        count_stmt = select(func.count()).select_from(User)
        total = (await self.session.execute(count_stmt)).scalar() or 0

        stmt = select(User).order_by(User.created_at, User.id).offset(offset).limit(limit)  # type: ignore[arg-type]
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def _execute_returning(self, stmt: Any) -> User | None:
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()
        await self.session.commit()
        return user

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if is_duplicate_email(e):
                raise DuplicateEmailError("Email is already registered") from e
            raise
