"""SQLModel database models."""

from passgate.models.base import TimestampMixin, generate_nanoid, utcnow
from passgate.models.user import User, UserCreate, UserRead, UserRole, UserUpdate

__all__ = [
    "TimestampMixin",
    "User",
    "UserCreate",
    "UserRead",
    "UserRole",
    "UserUpdate",
    "generate_nanoid",
    "utcnow",
]
