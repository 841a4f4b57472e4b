"""Request/response schemas for auth and user endpoints.

JSON field names are camelCase on the wire (accessToken, firstName, ...);
Python attributes stay snake_case.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.core.security import (
    IDENTIFIER_MAX_LEN,
    NAME_MAX_LEN,
    PASSWORD_MAX_LEN,
    USERNAME_MAX_LEN,
    validate_password_strength,
)

if TYPE_CHECKING:
    from app.services.identity import UserRecord

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(CamelModel):
    """Credentials for login. identifier is an email address or a username."""

    identifier: str = Field(..., min_length=1, max_length=IDENTIFIER_MAX_LEN, description="Email or username")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")

    @field_validator("identifier")
    @classmethod
    def normalize_identifier(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("Email or username cannot be empty")
        return v


class RegisterRequest(CamelModel):
    """New user account, created by an administrator."""

    email: str = Field(..., max_length=IDENTIFIER_MAX_LEN)
    username: str = Field(..., min_length=1, max_length=USERNAME_MAX_LEN)
    password: str = Field(..., max_length=PASSWORD_MAX_LEN)
    first_name: str = Field(..., min_length=1, max_length=NAME_MAX_LEN)
    last_name: str = Field(..., min_length=1, max_length=NAME_MAX_LEN)
    role_id: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not _EMAIL_RE.match(v):
            raise ValueError("Please provide a valid email address")
        return v

    @field_validator("username")
    @classmethod
    def normalize_username(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("Username is required")
        if "@" in v:
            raise ValueError("Username must not contain '@'")
        return v

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        ok, message = validate_password_strength(v)
        if not ok:
            raise ValueError(message)
        return v


class RolePublic(CamelModel):
    id: str
    name: str
    permissions: list[str] = Field(default_factory=list)


class UserPublic(CamelModel):
    """User projection returned to clients. Never carries the password hash."""

    id: str
    email: str
    username: str
    first_name: str
    last_name: str
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    role: RolePublic | None = None

    @classmethod
    def from_record(cls, user: UserRecord) -> UserPublic:
        role = None
        if user.role is not None:
            role = RolePublic(
                id=user.role.id,
                name=user.role.name,
                permissions=sorted(user.role.permissions),
            )
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            is_active=user.is_active,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
            role=role,
        )


class LoginResponse(CamelModel):
    """Access token and user. The refresh token travels in an HTTP-only cookie."""

    access_token: str = Field(..., description="JWT access token")
    user: UserPublic


class LogoutResponse(CamelModel):
    message: str = "Logout successful"
    success: bool = True


class UsersListResponse(CamelModel):
    """Response for GET /users."""

    users: list[UserPublic]


class ErrorBody(CamelModel):
    message: str
    status_code: int
    code: str | None = None
    stack: list[str] | None = None


class ErrorResponse(CamelModel):
    """Error envelope returned by every failing endpoint."""

    error: ErrorBody
