"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator
from typing import Any

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from passgate.api.deps import get_mailer, get_user_store
from passgate.config import settings
from passgate.main import app
from passgate.models import User, UserRole
from passgate.services.auth import create_token
from passgate.services.memory_store import MemoryUserStore
from passgate.services.passwords import hash_password

TEST_PASSWORD = "Secret123!"


class RecordingMailer:
    """Mailer that records what it was asked to send."""

    def __init__(self) -> None:
        self.verifications: list[tuple[str, str]] = []
        self.resets: list[tuple[str, str]] = []
        self.succeed = True

    async def send_verification(self, email: str, token: str) -> bool:
        self.verifications.append((email, token))
        return self.succeed

    async def send_password_reset(self, email: str, token: str) -> bool:
        self.resets.append((email, token))
        return self.succeed

    def verification_token_for(self, email: str) -> str:
        return next(token for to, token in reversed(self.verifications) if to == email)

    def reset_token_for(self, email: str) -> str:
        return next(token for to, token in reversed(self.resets) if to == email)


def make_user(
    email: str,
    *,
    role: UserRole = UserRole.USER,
    verified: bool = True,
    password: str = TEST_PASSWORD,
) -> User:
    """Build an unsaved user with a hashed password."""
    first, _, _ = email.partition("@")
    return User(
        email=email,
        password_hash=hash_password(password),
        first_name=first.capitalize(),
        last_name="Tester",
        role=role,
        is_email_verified=verified,
    )


@pytest.fixture
def store() -> MemoryUserStore:
    """Fresh in-memory user store."""
    return MemoryUserStore()


@pytest.fixture
def mailer() -> RecordingMailer:
    """Mailer that records outgoing tokens."""
    return RecordingMailer()


@pytest.fixture
async def client(store: MemoryUserStore, mailer: RecordingMailer) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client backed by the in-memory store."""
    app.dependency_overrides[get_user_store] = lambda: store
    app.dependency_overrides[get_mailer] = lambda: mailer

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def user(store: MemoryUserStore) -> User:
    """Create a verified test user."""
    return await store.create(make_user("test@example.com"))


@pytest.fixture
async def other_user(store: MemoryUserStore) -> User:
    """Create a second verified user."""
    return await store.create(make_user("other@example.com"))


@pytest.fixture
async def admin_user(store: MemoryUserStore) -> User:
    """Create a verified admin user."""
    return await store.create(make_user("admin@example.com", role=UserRole.ADMIN))


@pytest.fixture
async def unverified_user(store: MemoryUserStore) -> User:
    """Create a user who has not verified their email."""
    return await store.create(make_user("pending@example.com", verified=False))


@pytest.fixture
def user_token(user: User) -> str:
    """Create a JWT token for the test user."""
    return create_token(user)


@pytest.fixture
def admin_token(admin_user: User) -> str:
    """Create a JWT token for the admin user."""
    return create_token(admin_user)


@pytest.fixture
def auth_headers(user_token: str) -> dict[str, str]:
    """Create authorization headers for the test user."""
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
def admin_headers(admin_token: str) -> dict[str, str]:
    """Create authorization headers for the admin user."""
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session on the test database, rolled back after each test.

    Skips when the test database is unreachable.
    """
    engine = create_async_engine(settings.database_url_test, echo=False, poolclass=NullPool)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
    except (OSError, SQLAlchemyError) as e:
        await engine.dispose()
        pytest.skip(f"Test database unavailable: {e!r}")

    async with engine.connect() as conn:
        await conn.begin()
        session_factory = async_sessionmaker(
            bind=conn,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
            join_transaction_mode="create_savepoint",
        )
        async with session_factory() as session:
            yield session
        await conn.rollback()

    await engine.dispose()


# Helper to make authenticated requests
class AuthenticatedClient:
    """Wrapper for AsyncClient with authentication."""

    def __init__(self, client: AsyncClient, headers: dict[str, str]):
        self.client = client
        self.headers = headers

    async def get(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.get(url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.post(url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.patch(url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.delete(url, **kwargs)


@pytest.fixture
def authenticated_client(client: AsyncClient, auth_headers: dict[str, str]) -> AuthenticatedClient:
    """Create an authenticated test client."""
    return AuthenticatedClient(client, auth_headers)


@pytest.fixture
def admin_client(client: AsyncClient, admin_headers: dict[str, str]) -> AuthenticatedClient:
    """Create an authenticated admin test client."""
    return AuthenticatedClient(client, admin_headers)
