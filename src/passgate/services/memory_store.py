"""In-memory UserStore for tests and local experiments."""

from datetime import datetime
from typing import Any

from passgate.models import User, utcnow
from passgate.models.user import normalize_email
from passgate.services.user_store import IMMUTABLE_FIELDS, DuplicateEmailError


def _copy(user: User) -> User:
    return User(**user.model_dump())


class MemoryUserStore:
    """Dict-backed UserStore.

    Records are copied in and out so callers never hold a reference to stored
    state. No method awaits between reading and writing a record, so each
    operation is atomic with respect to other coroutines on the same loop.
    """

    def __init__(self) -> None:
        self.users: dict[str, User] = {}

    def _by_email(self, email: str) -> User | None:
        email = normalize_email(email)
        return next((u for u in self.users.values() if u.email == email), None)

    async def find_by_email(self, email: str) -> User | None:
        user = self._by_email(email)
        return _copy(user) if user else None

    async def find_by_id(self, user_id: str) -> User | None:
        user = self.users.get(str(user_id))
        return _copy(user) if user else None

    async def create(self, user: User) -> User:
        stored = _copy(user)
        stored.email = normalize_email(stored.email)
        if self._by_email(stored.email) is not None:
            raise DuplicateEmailError("Email is already registered")
        self.users[stored.id] = stored
        return _copy(stored)

    async def update(self, user_id: str, fields: dict[str, Any]) -> User | None:
        user = self.users.get(str(user_id))
        if user is None:
            return None

        changes = dict(fields)
        for key in changes:
            if key in IMMUTABLE_FIELDS:
                raise ValueError(f"Field {key!r} cannot be updated")
        if changes.get("email") is not None:
            changes["email"] = normalize_email(changes["email"])
            other = self._by_email(changes["email"])
            if other is not None and other.id != user.id:
                raise DuplicateEmailError("Email is already registered")

        for key, value in changes.items():
            setattr(user, key, value)
        user.updated_at = utcnow()
        return _copy(user)

    async def delete(self, user_id: str) -> User | None:
        user = self.users.pop(str(user_id), None)
        return _copy(user) if user else None

    def _match_verification(self, value: str, now: datetime) -> User | None:
        if not value:
            return None
        for user in self.users.values():
            expires = user.email_verification_token_expires
            if user.email_verification_token == value and expires is not None and expires > now:
                return user
        return None

    def _match_reset(self, value: str, now: datetime) -> User | None:
        if not value:
            return None
        for user in self.users.values():
            expires = user.password_reset_token_expires
            if user.password_reset_token == value and expires is not None and expires > now:
                return user
        return None

    async def find_by_verification_token(self, value: str, now: datetime) -> User | None:
        user = self._match_verification(value, now)
        return _copy(user) if user else None

    async def find_by_reset_token(self, value: str, now: datetime) -> User | None:
        user = self._match_reset(value, now)
        return _copy(user) if user else None

    async def consume_verification_token(self, value: str, now: datetime) -> User | None:
        user = self._match_verification(value, now)
        if user is None:
            return None
        user.is_email_verified = True
        user.email_verification_token = None
        user.email_verification_token_expires = None
        user.updated_at = now
        return _copy(user)

    async def consume_reset_token(
        self, value: str, password_hash: str, now: datetime
    ) -> User | None:
        user = self._match_reset(value, now)
        if user is None:
            return None
        user.password_hash = password_hash
        user.password_reset_token = None
        user.password_reset_token_expires = None
        user.updated_at = now
        return _copy(user)

    async def list_users(self, offset: int, limit: int) -> tuple[list[User], int]:
        ordered = sorted(self.users.values(), key=lambda u: (u.created_at, u.id))
        return [_copy(u) for u in ordered[offset : offset + limit]], len(ordered)
