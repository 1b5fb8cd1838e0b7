"""Authentication endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel, EmailStr, Field, field_validator

from passgate.api.deps import CurrentPrincipal, MailerDep, StoreDep
from passgate.models import UserCreate, UserRead
from passgate.models.user import PASSWORD_MIN_LENGTH, check_password_strength
from passgate.schemas import SuccessResponse
from passgate.services import accounts
from passgate.services.auth import create_token
from passgate.services.errors import CredentialInvalid

router = APIRouter()

# Same text whether or not the address exists
RESET_REQUESTED_MESSAGE = "If the email is registered, a password reset link has been sent"
VERIFICATION_RESENT_MESSAGE = (
    "If the email is registered and unverified, a verification link has been sent"
)


class LoginRequest(BaseModel):
    """Request body for login."""

    email: EmailStr
    password: str = Field(min_length=1)


class EmailRequest(BaseModel):
    """Request body naming an email address."""

    email: EmailStr


class TokenRequest(BaseModel):
    """Request body carrying an emailed token."""

    token: str = Field(min_length=1, max_length=128)


class ResetPasswordRequest(TokenRequest):
    """Request body for completing a password reset."""

    new_password: str = Field(min_length=PASSWORD_MIN_LENGTH)

    @field_validator("new_password")
    @classmethod
    def _check_password(cls, value: str) -> str:
        return check_password_strength(value)


class TokenResponse(BaseModel):
    """Response containing JWT token."""

    access_token: str
    token_type: str = "bearer"
    user: UserRead


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def register(request: UserCreate, store: StoreDep, mailer: MailerDep):
    """Create an account and email a verification link."""
    user = await accounts.register(store, mailer, request)
    return UserRead.model_validate(user)


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, store: StoreDep):
    """Exchange email and password for a bearer token."""
    result = await accounts.login(store, request.email, request.password)
    return TokenResponse(
        access_token=result.token,
        user=UserRead.model_validate(result.user),
    )


@router.post("/verify-email", response_model=SuccessResponse)
async def verify_email(request: TokenRequest, store: StoreDep):
    """Redeem an email verification token."""
    await accounts.verify_email(store, request.token)
    return SuccessResponse(message="Email verified")


@router.post("/resend-verification", response_model=SuccessResponse)
async def resend_verification(request: EmailRequest, store: StoreDep, mailer: MailerDep):
    """Send a new verification link. The response does not reveal whether the email exists."""
    await accounts.resend_verification(store, mailer, request.email)
    return SuccessResponse(message=VERIFICATION_RESENT_MESSAGE)


@router.post("/forgot-password", response_model=SuccessResponse)
async def forgot_password(request: EmailRequest, store: StoreDep, mailer: MailerDep):
    """Start a password reset. The response does not reveal whether the email exists."""
    await accounts.request_password_reset(store, mailer, request.email)
    return SuccessResponse(message=RESET_REQUESTED_MESSAGE)


@router.post("/reset-password", response_model=SuccessResponse)
async def reset_password(request: ResetPasswordRequest, store: StoreDep):
    """Redeem a password reset token and set a new password."""
    await accounts.reset_password(store, request.token, request.new_password)
    return SuccessResponse(message="Password has been reset")


@router.get("/me", response_model=UserRead)
async def get_current_user_info(principal: CurrentPrincipal, store: StoreDep):
    """Get current authenticated user info."""
    user = await store.find_by_id(principal.subject_id)
    if user is None:
        raise CredentialInvalid()
    return UserRead.model_validate(user)


@router.post("/logout", response_model=SuccessResponse)
async def logout():
    """
    Logout endpoint.

    Since we use stateless JWT, this is mostly for client-side token clearing.
    """
    return SuccessResponse(message="Logged out successfully")


@router.post("/refresh", response_model=TokenResponse)
async def refresh(principal: CurrentPrincipal, store: StoreDep):
    """
    Refresh JWT token.

    Validates the current token and issues a new one with fresh user data
    (including the current role) and extended expiration.
    """
    user = await store.find_by_id(principal.subject_id)
    if user is None:
        raise CredentialInvalid()

    return TokenResponse(
        access_token=create_token(user),
        user=UserRead.model_validate(user),
    )
