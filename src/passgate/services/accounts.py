"""Account workflows: registration, login, email verification, password reset.

Functions take their collaborators explicitly: a ``UserStore`` for persistence
and a ``Mailer`` for delivery. ``now`` defaults to the current UTC time and
exists so expiry windows can be exercised deterministically.

Verification and reset tokens live on the user record. Issuing a token
overwrites any pending one of the same kind; redeeming goes through the
store's conditional consume so a token works at most once.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from secrets import token_hex

from passgate.config import settings
from passgate.models import User, UserCreate, UserUpdate, utcnow
from passgate.services.auth import create_token
from passgate.services.email import Mailer
from passgate.services.errors import (
    Conflict,
    EmailNotVerified,
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFound,
)
from passgate.services.passwords import (
    DUMMY_HASH,
    CorruptCredentialError,
    hash_password,
    verify_password,
)
from passgate.services.user_store import DuplicateEmailError, UserStore

logger = logging.getLogger(__name__)

# 32 random bytes, hex encoded to 64 characters
TOKEN_BYTES = 32


@dataclass(frozen=True)
class LoginResult:
    """Authenticated user plus a freshly issued session token."""

    user: User
    token: str


def generate_token() -> str:
    """Generate an unguessable single-use token."""
    return token_hex(TOKEN_BYTES)


async def _dispatch(
    send: Callable[[str, str], Awaitable[bool]],
    email: str,
    token: str,
    kind: str,
) -> bool:
    """Hand a token to the mailer. Failures are logged, never raised."""
    try:
        sent = await send(email, token)
    except Exception:
        logger.exception(f"Mailer raised while sending {kind} email")
        return False
    if not sent:
        logger.warning(f"Failed to deliver {kind} email")
    return sent


async def register(
    store: UserStore,
    mailer: Mailer,
    data: UserCreate,
    *,
    now: datetime | None = None,
) -> User:
    """Create an unverified account and send its verification email."""
    if await store.find_by_email(data.email) is not None:
        raise Conflict()

    user = User(
        email=data.email,
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        role=data.role,
    )
    try:
        user = await store.create(user)
    except DuplicateEmailError as e:
        raise Conflict() from e

    logger.info(f"Registered user {user.id} with role {user.role.value}")
    await issue_verification(store, mailer, user, now=now)
    return user


async def issue_verification(
    store: UserStore,
    mailer: Mailer,
    user: User,
    *,
    now: datetime | None = None,
) -> str:
    """Store a new verification token on ``user`` and email it.

    Returns the token. Any previously pending verification token stops working.
    """
    now = now or utcnow()
    token = generate_token()
    expires = now + timedelta(hours=settings.email_verification_expiration_hours)

    updated = await store.update(
        user.id,
        {"email_verification_token": token, "email_verification_token_expires": expires},
    )
    if updated is None:
        raise NotFound()

    await _dispatch(mailer.send_verification, updated.email, token, "verification")
    return token


async def verify_email(store: UserStore, token: str, *, now: datetime | None = None) -> User:
    """Redeem a verification token and mark its owner verified."""
    user = await store.consume_verification_token(token, now or utcnow())
    if user is None:
        raise InvalidOrExpiredToken()

    logger.info(f"Verified email for user {user.id}")
    return user


async def resend_verification(
    store: UserStore,
    mailer: Mailer,
    email: str,
    *,
    now: datetime | None = None,
) -> None:
    """Send a fresh verification email if the account exists and is unverified.

    Returns the same way whether or not the address is registered.
    """
    user = await store.find_by_email(email)
    if user is None or user.is_email_verified:
        logger.debug("Verification resend requested for unknown or verified address")
        return

    await issue_verification(store, mailer, user, now=now)


async def request_password_reset(
    store: UserStore,
    mailer: Mailer,
    email: str,
    *,
    now: datetime | None = None,
) -> None:
    """Start a password reset.

    Returns the same way whether or not the address is registered; a token is
    only issued and mailed when it is.
    """
    user = await store.find_by_email(email)
    if user is None:
        logger.debug("Password reset requested for unknown address")
        return

    now = now or utcnow()
    token = generate_token()
    expires = now + timedelta(minutes=settings.password_reset_expiration_minutes)
    updated = await store.update(
        user.id,
        {"password_reset_token": token, "password_reset_token_expires": expires},
    )
    if updated is None:
        # Deleted between lookup and update
        return

    logger.info(f"Issued password reset token for user {user.id}")
    await _dispatch(mailer.send_password_reset, updated.email, token, "password reset")


async def reset_password(
    store: UserStore,
    token: str,
    new_password: str,
    *,
    now: datetime | None = None,
) -> User:
    """Redeem a reset token and replace the owner's password."""
    password_hash = hash_password(new_password)
    user = await store.consume_reset_token(token, password_hash, now or utcnow())
    if user is None:
        raise InvalidOrExpiredToken()

    logger.info(f"Password reset for user {user.id}")
    return user


async def login(
    store: UserStore,
    email: str,
    password: str,
    *,
    now: datetime | None = None,
) -> LoginResult:
    """Check credentials and issue a session token.

    Order is fixed: account lookup, password check, then verification status.
    Unknown email and wrong password fail identically; only a caller who knows
    the password learns that the address is unverified.
    """
    user = await store.find_by_email(email)
    if user is None:
        verify_password(password, DUMMY_HASH)
        raise InvalidCredentials()

    try:
        valid = verify_password(password, user.password_hash)
    except CorruptCredentialError as e:
        logger.error(f"Stored password hash for user {user.id} is corrupt")
        raise InvalidCredentials() from e

    if not valid:
        logger.info(f"Failed login for user {user.id}")
        raise InvalidCredentials()

    if not user.is_email_verified:
        raise EmailNotVerified()

    return LoginResult(user=user, token=create_token(user, now=now))


async def get_user(store: UserStore, user_id: str) -> User:
    """Fetch a user or raise NotFound."""
    user = await store.find_by_id(user_id)
    if user is None:
        raise NotFound()
    return user


async def update_user(store: UserStore, user_id: str, data: UserUpdate) -> User:
    """Apply a profile update, keeping email addresses unique."""
    user = await get_user(store, user_id)
    changes = data.model_dump(exclude_unset=True)

    new_email = changes.get("email")
    if new_email is not None and new_email != user.email:
        existing = await store.find_by_email(new_email)
        if existing is not None and existing.id != user.id:
            raise Conflict("Email is already in use")

    try:
        updated = await store.update(user.id, changes)
    except DuplicateEmailError as e:
        raise Conflict("Email is already in use") from e
    if updated is None:
        raise NotFound()
    return updated


async def delete_user(store: UserStore, user_id: str) -> User:
    """Delete a user or raise NotFound."""
    user = await store.delete(user_id)
    if user is None:
        raise NotFound()
    logger.info(f"Deleted user {user.id}")
    return user


async def list_users(store: UserStore, offset: int, limit: int) -> tuple[list[User], int]:
    """Return one page of users and the total count."""
    return await store.list_users(offset, limit)
