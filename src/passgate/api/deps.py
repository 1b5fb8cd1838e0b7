"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from passgate.database import get_session
from passgate.models import UserRole
from passgate.services.access import authorize_owner, authorize_role
from passgate.services.auth import Principal, authenticate_header
from passgate.services.email import Mailer, email_service
from passgate.services.user_store import SQLUserStore, UserStore

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_user_store(session: SessionDep) -> UserStore:
    """User store bound to the request's database session."""
    return SQLUserStore(session)


def get_mailer() -> Mailer:
    """Mailer used for verification and reset emails."""
    return email_service


StoreDep = Annotated[UserStore, Depends(get_user_store)]
MailerDep = Annotated[Mailer, Depends(get_mailer)]


async def get_current_principal(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> Principal:
    """Authenticate the bearer token on every request; raises a 401-class error."""
    principal = authenticate_header(authorization)
    request.state.principal = principal
    return principal


async def get_admin_principal(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """Get current principal and verify they are an admin."""
    authorize_role(principal, UserRole.ADMIN)
    return principal


async def get_owner_principal(
    user_id: str,
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """Get current principal and verify they own ``user_id`` or are an admin."""
    authorize_owner(principal, user_id)
    return principal


# Type aliases for common dependencies
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
AdminPrincipal = Annotated[Principal, Depends(get_admin_principal)]
OwnerOrAdmin = Annotated[Principal, Depends(get_owner_principal)]
