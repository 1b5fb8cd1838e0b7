"""Authentication service for JWT token management."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from passgate.config import settings
from passgate.models import User, UserRole, utcnow
from passgate.services.errors import CredentialExpired, CredentialInvalid, MissingCredential

logger = logging.getLogger(__name__)

BEARER_SCHEME = "bearer"


class TokenError(Exception):
    """Token could not be accepted."""

    pass


class TokenMalformed(TokenError):
    """Token is not a structurally valid JWT or lacks required claims."""

    pass


class TokenSignatureMismatch(TokenError):
    """Token signature does not match the signing secret."""

    pass


class TokenExpired(TokenError):
    """Token is past its expiry."""

    pass


@dataclass(frozen=True)
class Principal:
    """Authenticated identity snapshot for the current request."""

    subject_id: str
    email: str
    role: UserRole


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of a session token."""

    subject_id: str
    email: str
    role: UserRole
    issued_at: datetime
    expires_at: datetime

    def to_principal(self) -> Principal:
        return Principal(subject_id=self.subject_id, email=self.email, role=self.role)


def create_token(
    user: User,
    *,
    secret: str | None = None,
    ttl: timedelta | None = None,
    now: datetime | None = None,
) -> str:
    """Create a JWT token for a user."""
    issued = now or utcnow()
    expires = issued + (ttl or timedelta(hours=settings.jwt_expiration_hours))
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": UserRole(user.role).value,
        "iat": int(issued.timestamp()),
        "exp": int(expires.timestamp()),
    }
    return jwt.encode(payload, secret or settings.session_secret, algorithm=settings.jwt_algorithm)


def _is_canonical(segment: str) -> bool:
    """Check that a base64url segment re-encodes to exactly itself."""
    try:
        raw = segment.encode("ascii")
        return base64url_encode(base64url_decode(raw)) == raw
    except ValueError:
        return False


def decode_token(
    token: str,
    *,
    secret: str | None = None,
    now: datetime | None = None,
) -> TokenClaims:
    """Decode and validate a JWT token.

    The structure is checked first, then the signature, and only then are the
    claims read. Expiry is compared against ``now`` (defaults to the current
    time); a token is expired once ``now >= exp``.
    """
    try:
        jwt.get_unverified_header(token)
        jwt.get_unverified_claims(token)
    except JWTError as e:
        raise TokenMalformed(f"Malformed token: {e}") from e

    segments = token.split(".")
    if len(segments) != 3 or not all(_is_canonical(s) for s in segments[:2]):
        raise TokenMalformed("Malformed token: non-canonical encoding")
    # Unused trailing bits in the last base64 character would otherwise let an
    # edited signature verify
    if not _is_canonical(segments[2]):
        raise TokenSignatureMismatch("Invalid token: non-canonical signature")

    try:
        payload = jwt.decode(
            token,
            secret or settings.session_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_exp": False},
        )
    except JWTError as e:
        raise TokenSignatureMismatch(f"Invalid token: {e}") from e

    try:
        claims = TokenClaims(
            subject_id=str(payload["sub"]),
            email=str(payload["email"]),
            role=UserRole(payload["role"]),
            issued_at=datetime.fromtimestamp(int(payload["iat"]), UTC),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), UTC),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise TokenMalformed(f"Invalid token claims: {e!r}") from e

    if (now or utcnow()) >= claims.expires_at:
        raise TokenExpired("Token has expired")

    return claims


def extract_bearer_token(header_value: str | None) -> str | None:
    """Pull the token out of an ``Authorization: Bearer <token>`` header."""
    if not header_value:
        return None
    parts = header_value.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != BEARER_SCHEME:
        return None
    return parts[1].strip() or None


def authenticate_header(
    header_value: str | None,
    *,
    secret: str | None = None,
    now: datetime | None = None,
) -> Principal:
    """Resolve an Authorization header into a Principal.

    Raises MissingCredential when there is no bearer token, CredentialExpired
    for an expired token and CredentialInvalid for anything malformed or
    tampered with.
    """
    token = extract_bearer_token(header_value)
    if token is None:
        raise MissingCredential()

    try:
        claims = decode_token(token, secret=secret, now=now)
    except TokenExpired as e:
        logger.debug("Rejected expired token")
        raise CredentialExpired() from e
    except TokenError as e:
        logger.info(f"Rejected invalid token: {e}")
        raise CredentialInvalid() from e

    return claims.to_principal()
