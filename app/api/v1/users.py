"""User endpoints: current profile, permission-gated listing and admin registration."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from app.api.deps import get_auth_service
from app.api.v1.auth import client_ip, get_current_user, require_permission, require_role, user_agent
from app.core.errors import NotFoundError
from app.models.enums import Permission
from app.schemas.auth import RegisterRequest, UserPublic, UsersListResponse
from app.services.auth import AuthService
from app.services.identity import UserRecord

router = APIRouter()


@router.get("/me", response_model=UserPublic)
async def read_current_user(
    user: Annotated[UserRecord, Depends(get_current_user)],
) -> UserPublic:
    return UserPublic.from_record(user)


@router.get("", response_model=UsersListResponse)
async def list_users(
    _viewer: Annotated[UserRecord, Depends(require_permission(Permission.USERS_VIEW))],
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> UsersListResponse:
    """List all users, deactivated ones included. Requires USERS_VIEW."""
    users = await auth.resolver.list_users()
    return UsersListResponse(users=[UserPublic.from_record(u) for u in users])


@router.post("/register", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def register_user(
    body: RegisterRequest,
    request: Request,
    admin: Annotated[UserRecord, Depends(require_role("Admin"))],
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> UserPublic:
    """Create a user account (Admin only). The creation is audited against the admin."""
    return await auth.register(
        body,
        created_by_user_id=admin.id,
        client_ip=client_ip(request),
        user_agent=user_agent(request),
    )


@router.get("/{user_id}", response_model=UserPublic)
async def get_user(
    user_id: str,
    _viewer: Annotated[UserRecord, Depends(require_permission(Permission.USERS_VIEW))],
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> UserPublic:
    user = await auth.resolver.get_user(user_id)
    if user is None:
        raise NotFoundError("User")
    return UserPublic.from_record(user)
