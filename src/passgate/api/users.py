"""User profile endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel

from passgate.api.deps import AdminPrincipal, CurrentPrincipal, OwnerOrAdmin, StoreDep
from passgate.models import UserRead, UserUpdate
from passgate.schemas import PaginatedResponse, PaginationParams
from passgate.services import accounts

router = APIRouter()


class DeleteUserResponse(BaseModel):
    """Response for a deleted user."""

    message: str
    user: UserRead


@router.get("", response_model=PaginatedResponse[UserRead])
async def list_users(
    pagination: Annotated[PaginationParams, Query()],
    store: StoreDep,
    _admin: AdminPrincipal,
):
    """List users page by page (admin only)."""
    users, total = await accounts.list_users(store, pagination.offset, pagination.limit)
    return PaginatedResponse[UserRead](
        items=[UserRead.model_validate(u) for u in users],
        total=total,
        page=pagination.page,
        limit=pagination.limit,
    )


@router.get("/me", response_model=UserRead)
async def get_profile(principal: CurrentPrincipal, store: StoreDep):
    """Get the caller's own profile."""
    user = await accounts.get_user(store, principal.subject_id)
    return UserRead.model_validate(user)


@router.patch("/me", response_model=UserRead)
async def update_profile(update: UserUpdate, principal: CurrentPrincipal, store: StoreDep):
    """Update the caller's own profile."""
    user = await accounts.update_user(store, principal.subject_id, update)
    return UserRead.model_validate(user)


@router.get("/{user_id}", response_model=UserRead)
async def get_user(user_id: str, store: StoreDep):
    """Get a user's public profile."""
    user = await accounts.get_user(store, user_id)
    return UserRead.model_validate(user)


@router.patch("/{user_id}", response_model=UserRead)
async def update_user(user_id: str, update: UserUpdate, store: StoreDep, _owner: OwnerOrAdmin):
    """Update a user (owner or admin)."""
    user = await accounts.update_user(store, user_id, update)
    return UserRead.model_validate(user)


@router.delete("/{user_id}", response_model=DeleteUserResponse)
async def delete_user(user_id: str, store: StoreDep, _owner: OwnerOrAdmin):
    """Delete a user (owner or admin)."""
    user = await accounts.delete_user(store, user_id)
    return DeleteUserResponse(message="User deleted", user=UserRead.model_validate(user))
