"""Password hashing with bcrypt."""

import bcrypt

from passgate.config import settings

# bcrypt ignores (or, in newer releases, rejects) input past 72 bytes
BCRYPT_MAX_BYTES = 72


class CorruptCredentialError(Exception):
    """A stored password hash could not be parsed."""

    pass


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a password with a random embedded salt."""
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash in constant time.

    Returns False on mismatch. Raises CorruptCredentialError if the stored
    hash is not a valid bcrypt digest.
    """
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
    except ValueError as e:
        raise CorruptCredentialError("Stored password hash is malformed") from e


# Checked against when a login names an unknown account so both paths do one
# bcrypt verification.
DUMMY_HASH = hash_password("dummy-password-for-timing")
