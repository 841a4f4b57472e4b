"""Pydantic request/response schemas."""

from app.schemas.auth import (
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    RegisterRequest,
    RolePublic,
    UserPublic,
    UsersListResponse,
)
from app.schemas.health import HealthResponse

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
    "RegisterRequest",
    "RolePublic",
    "UserPublic",
    "UsersListResponse",
]
