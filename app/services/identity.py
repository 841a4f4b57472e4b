"""Identity resolution: map a login identifier or token subject to a user record.

The persistence collaborator is described by the UserStore protocol so the
auth flows can run against SQLAlchemy in production and in-memory fakes in
tests. Records are plain dataclasses detached from any ORM session.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload, sessionmaker

from app.core.database import session_scope
from app.core.errors import ConflictError
from app.models import Role, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleRecord:
    id: str
    name: str
    permissions: frozenset[str] = field(default_factory=frozenset)
    is_active: bool = True


@dataclass(frozen=True)
class UserRecord:
    """A user with its role and permission set eagerly resolved."""

    id: str
    email: str
    username: str
    password_hash: str = field(repr=False)
    first_name: str = ""
    last_name: str = ""
    is_active: bool = True
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    role: RoleRecord | None = None

    @property
    def role_name(self) -> str | None:
        return self.role.name if self.role else None

    def has_permission(self, permission: str) -> bool:
        """False when the role is missing or inactive, whatever it grants."""
        if self.role is None or not self.role.is_active:
            return False
        return permission in self.role.permissions


@dataclass(frozen=True)
class NewUser:
    email: str
    username: str
    password_hash: str = field(repr=False)
    first_name: str
    last_name: str
    role_id: str


class UserStore(Protocol):
    """Blocking persistence operations the auth core depends on."""

    def find_user_by_identifier(self, identifier: str) -> UserRecord | None: ...

    def find_user_by_id(self, user_id: str) -> UserRecord | None: ...

    def list_users(self) -> list[UserRecord]: ...

    def email_exists(self, email: str) -> bool: ...

    def username_exists(self, username: str) -> bool: ...

    def role_exists(self, role_id: str) -> bool: ...

    def create_user(self, new_user: NewUser) -> UserRecord: ...

    def update_password(self, user_id: str, password_hash: str) -> None: ...

    def update_last_login(self, user_id: str, when: datetime) -> None: ...


def _role_to_record(role: Role | None) -> RoleRecord | None:
    if role is None:
        return None
    return RoleRecord(
        id=role.id,
        name=role.name,
        permissions=frozenset(rp.permission.value for rp in role.permissions),
        is_active=bool(role.is_active),
    )


def _user_to_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        email=user.email,
        username=user.username,
        password_hash=user.password_hash,
        first_name=user.first_name,
        last_name=user.last_name,
        is_active=bool(user.is_active),
        last_login_at=user.last_login_at,
        created_at=user.created_at,
        role=_role_to_record(user.role),
    )


def _with_role():
    return selectinload(User.role).selectinload(Role.permissions)


class SqlAlchemyUserStore:
    """UserStore backed by SQLAlchemy; one short-lived session per call."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def find_user_by_identifier(self, identifier: str) -> UserRecord | None:
        stmt = (
            select(User)
            .options(_with_role())
            .where(or_(User.email == identifier, User.username == identifier))
            .limit(1)
        )
        with session_scope(self._session_factory) as session:
            user = session.scalars(stmt).first()
            return _user_to_record(user) if user else None

    def find_user_by_id(self, user_id: str) -> UserRecord | None:
        stmt = select(User).options(_with_role()).where(User.id == user_id)
        with session_scope(self._session_factory) as session:
            user = session.scalars(stmt).first()
            return _user_to_record(user) if user else None

    def list_users(self) -> list[UserRecord]:
        stmt = select(User).options(_with_role()).order_by(User.created_at.desc())
        with session_scope(self._session_factory) as session:
            return [_user_to_record(u) for u in session.scalars(stmt).all()]

    def email_exists(self, email: str) -> bool:
        with session_scope(self._session_factory) as session:
            return session.scalar(select(User.id).where(User.email == email)) is not None

    def username_exists(self, username: str) -> bool:
        with session_scope(self._session_factory) as session:
            return session.scalar(select(User.id).where(User.username == username)) is not None

    def role_exists(self, role_id: str) -> bool:
        with session_scope(self._session_factory) as session:
            return session.scalar(select(Role.id).where(Role.id == role_id)) is not None

    def create_user(self, new_user: NewUser) -> UserRecord:
        try:
            with session_scope(self._session_factory) as session:
                user = User(
                    email=new_user.email,
                    username=new_user.username,
                    password_hash=new_user.password_hash,
                    first_name=new_user.first_name,
                    last_name=new_user.last_name,
                    role_id=new_user.role_id,
                )
                session.add(user)
                session.flush()
                user_id = user.id
        except IntegrityError as e:
            # Lost a race with a concurrent registration for the same email/username
            raise ConflictError("Email address or username is already in use") from e
        created = self.find_user_by_id(user_id)
        if created is None:
            raise SQLAlchemyError(f"User {user_id} not found after insert")
        return created

    def update_password(self, user_id: str, password_hash: str) -> None:
        with session_scope(self._session_factory) as session:
            user = session.get(User, user_id)
            if user is not None:
                user.password_hash = password_hash

    def update_last_login(self, user_id: str, when: datetime) -> None:
        with session_scope(self._session_factory) as session:
            user = session.get(User, user_id)
            if user is not None:
                user.last_login_at = when


class IdentityResolver:
    """
    Async facade over a UserStore.

    Lookups are read-only and never raise for "not found": callers get None
    and decide how to report it. Store failures are logged and treated as a
    miss so that no backend detail reaches an unauthenticated client.
    """

    def __init__(self, store: UserStore) -> None:
        self._store = store

    @property
    def store(self) -> UserStore:
        return self._store

    async def find_by_identifier(
        self, identifier: str, include_inactive: bool = False
    ) -> UserRecord | None:
        """Exact match on email or username. Caller is expected to lower-case the identifier."""
        try:
            user = await asyncio.to_thread(self._store.find_user_by_identifier, identifier)
        except SQLAlchemyError:
            logger.exception("Find user by identifier failed")
            return None
        if user is None:
            return None
        if not user.is_active and not include_inactive:
            return None
        return user

    async def find_by_id(self, user_id: str, raise_on_error: bool = False) -> UserRecord | None:
        """
        Active user with role and permissions, or None when missing or deactivated.
        With raise_on_error, store failures propagate instead of reading as a miss.
        """
        user = await self.get_user(user_id, raise_on_error=raise_on_error)
        if user is None or not user.is_active:
            return None
        return user

    async def get_user(self, user_id: str, raise_on_error: bool = False) -> UserRecord | None:
        """Any user by id, including deactivated ones (admin views)."""
        try:
            return await asyncio.to_thread(self._store.find_user_by_id, user_id)
        except SQLAlchemyError:
            logger.exception("Find user by ID failed", extra={"user_id": user_id})
            if raise_on_error:
                raise
            return None

    async def list_users(self) -> list[UserRecord]:
        return await asyncio.to_thread(self._store.list_users)
