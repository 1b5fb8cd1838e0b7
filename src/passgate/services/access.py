"""Ownership and role checks for authenticated principals."""

from collections.abc import Collection

from passgate.models import UserRole
from passgate.services.auth import Principal
from passgate.services.errors import Forbidden

# Roles that may act on any user's resources
ELEVATED_ROLES: frozenset[UserRole] = frozenset({UserRole.ADMIN})


def _normalize_id(value: object) -> str:
    return str(value).strip()


def is_owner_or_elevated(
    principal: Principal,
    owner_id: object,
    elevated_roles: Collection[UserRole] = ELEVATED_ROLES,
) -> bool:
    """Check whether ``principal`` owns the resource or holds an elevated role.

    Ids are compared as strings so a path parameter matches a stored id of any type.
    """
    if principal.role in elevated_roles:
        return True
    return _normalize_id(principal.subject_id) == _normalize_id(owner_id)


def authorize_owner(
    principal: Principal,
    owner_id: object,
    elevated_roles: Collection[UserRole] = ELEVATED_ROLES,
) -> None:
    """Raise Forbidden unless ``principal`` may act on ``owner_id``'s resources."""
    if not is_owner_or_elevated(principal, owner_id, elevated_roles):
        raise Forbidden()


def has_role(principal: Principal, role: UserRole | str) -> bool:
    """Check whether ``principal`` holds exactly ``role``."""
    return principal.role == UserRole(role)


def authorize_role(principal: Principal, role: UserRole | str) -> None:
    """Raise Forbidden unless ``principal`` holds ``role``."""
    if not has_role(principal, role):
        raise Forbidden(f"{UserRole(role).value.capitalize()} access required")
