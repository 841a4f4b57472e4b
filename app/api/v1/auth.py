"""Login/refresh/logout routes and the auth dependencies (get_current_user, require_permission, require_role)."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.api.deps import get_auth_service
from app.core.config import Settings, get_settings
from app.core.errors import ForbiddenError, UnauthorizedError
from app.core.tokens import AccessTokenClaims
from app.models.enums import Permission
from app.schemas.auth import LoginRequest, LoginResponse, LogoutResponse
from app.services.auth import AuthService
from app.services.identity import UserRecord

router = APIRouter()
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller attached to request.state.auth for the rest of the request."""

    user: UserRecord
    claims: AccessTokenClaims


def client_ip(request: Request) -> str | None:
    """Peer address of the connection. Proxy headers are honoured only via the server (uvicorn --proxy-headers)."""
    return request.client.host if request.client else None


def user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")


def _refresh_cookie_path(settings: Settings) -> str:
    return f"{settings.API_V1_PREFIX.rstrip('/')}/auth"


def set_refresh_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        max_age=settings.refresh_token_ttl_seconds,
        path=_refresh_cookie_path(settings),
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def clear_refresh_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        path=_refresh_cookie_path(settings),
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> UserRecord:
    """Dependency: require a valid Bearer access token for an active user. Raises 401 otherwise."""
    existing = getattr(request.state, "auth", None)
    if isinstance(existing, AuthContext):
        return existing.user

    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Missing authorization token", code="missing_token")

    claims = auth.tokens.verify_access_token(credentials.credentials)
    user = await auth.resolver.find_by_id(claims.user_id)
    if user is None:
        raise UnauthorizedError("User not found", code="user_not_found")

    request.state.auth = AuthContext(user=user, claims=claims)
    return user


async def get_optional_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> UserRecord | None:
    """Dependency: like get_current_user, but anonymous or bad credentials yield None."""
    if credentials is None:
        return None
    try:
        return await get_current_user(request, credentials, auth)
    except UnauthorizedError:
        return None


def require_permission(permission: Permission):
    """Dependency factory: 403 unless the caller's active role grants permission."""
    tag = permission.value if isinstance(permission, Permission) else str(permission)
    denied = f"You don't have permission to {tag.lower().replace('_', ' ')}"

    async def checker(
        user: Annotated[UserRecord, Depends(get_current_user)],
    ) -> UserRecord:
        if not user.has_permission(tag):
            raise ForbiddenError(denied)
        return user

    return checker


def require_role(*role_names: str):
    """Dependency factory: 403 unless the caller's active role is one of role_names."""
    allowed = frozenset(role_names)

    async def checker(
        user: Annotated[UserRecord, Depends(get_current_user)],
    ) -> UserRecord:
        if user.role is None or not user.role.is_active or user.role.name not in allowed:
            raise ForbiddenError("Forbidden")
        return user

    return checker


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    auth: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> LoginResponse:
    """
    Authenticate with email or username and password.
    Returns the access token in the body; the refresh token is set as an HTTP-only cookie.
    """
    result = await auth.login(
        body.identifier,
        body.password,
        client_ip=client_ip(request),
        user_agent=user_agent(request),
    )
    set_refresh_cookie(response, result.refresh_token, settings)
    return LoginResponse(access_token=result.access_token, user=result.user)


@router.post("/refresh", response_model=LoginResponse)
async def refresh(
    request: Request,
    response: Response,
    auth: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> LoginResponse:
    """Exchange the refresh-token cookie for a new access token and a rotated cookie."""
    token = request.cookies.get(settings.REFRESH_COOKIE_NAME)
    if not token:
        raise UnauthorizedError("No refresh token provided", code="missing_token")
    result = await auth.refresh(token)
    set_refresh_cookie(response, result.refresh_token, settings)
    return LoginResponse(access_token=result.access_token, user=result.user)


@router.post("/logout", response_model=LogoutResponse, status_code=status.HTTP_200_OK)
async def logout(
    request: Request,
    response: Response,
    user: Annotated[UserRecord | None, Depends(get_optional_user)],
    auth: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> LogoutResponse:
    """Clear the refresh cookie. Always succeeds; authenticated callers are audited."""
    await auth.logout(
        user_id=user.id if user else None,
        refresh_token=request.cookies.get(settings.REFRESH_COOKIE_NAME),
        client_ip=client_ip(request),
        user_agent=user_agent(request),
    )
    clear_refresh_cookie(response, settings)
    return LogoutResponse()
