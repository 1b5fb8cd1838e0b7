"""Account service error taxonomy.

Every error carries the HTTP status it maps to, a stable machine-readable
``code`` and a public message that never includes internal identifiers.
Authentication failures (401) and authorization failures (403) are separate
branches of the hierarchy.
"""


class AccountError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 400
    code: str = "error"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(AccountError):
    """The caller could not be identified."""

    status_code = 401
    code = "unauthenticated"
    default_message = "Not authenticated"


class MissingCredential(AuthenticationError):
    code = "missing_credential"
    default_message = "Not authenticated"


class CredentialExpired(AuthenticationError):
    code = "credential_expired"
    default_message = "Token has expired"


class CredentialInvalid(AuthenticationError):
    code = "credential_invalid"
    default_message = "Invalid token"


class InvalidCredentials(AuthenticationError):
    """Unknown email or wrong password; the message is identical for both."""

    code = "invalid_credentials"
    default_message = "Invalid email or password"


class AuthorizationError(AccountError):
    """The caller is identified but not allowed to do this."""

    status_code = 403
    code = "forbidden"
    default_message = "You do not have permission to access this resource"


class Forbidden(AuthorizationError):
    pass


class EmailNotVerified(AuthorizationError):
    code = "email_not_verified"
    default_message = "Email address has not been verified"


class NotFound(AccountError):
    status_code = 404
    code = "not_found"
    default_message = "User not found"


class Conflict(AccountError):
    status_code = 409
    code = "conflict"
    default_message = "Email is already registered"


class ValidationFailure(AccountError):
    status_code = 400
    code = "validation_failed"
    default_message = "Invalid request"


class InvalidOrExpiredToken(AccountError):
    """Covers both unknown and timed-out tokens so callers cannot tell them apart."""

    status_code = 400
    code = "invalid_or_expired_token"
    default_message = "Invalid or expired token"
