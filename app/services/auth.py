"""Login, token refresh, logout and registration flows.

AuthService composes the password hasher, token service, identity resolver
and audit logger. Credential failures are reported with one generic message
so callers cannot tell an unknown identifier from a wrong password.
Maintenance work (rehash, last-login timestamp, audit) never fails a login.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import AppError, ConflictError, UnauthorizedError, ValidationError
from app.core.security import PasswordHasher
from app.core.tokens import TokenService
from app.schemas.auth import RegisterRequest, UserPublic
from app.services.audit import AuditLogger
from app.services.identity import IdentityResolver, NewUser, UserRecord
from app.services.refresh_registry import RefreshTokenRegistry

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials provided"
ACCOUNT_DEACTIVATED = "Your account is deactivated"
USER_UNAVAILABLE = "User not found or account deactivated"
REFRESH_TOKEN_REUSED = "Refresh token has already been used"
EMAIL_TAKEN = "Email address is already registered"
USERNAME_TAKEN = "Username is already taken"

# Input for the timing-equalization hash, computed on the first unknown-identifier login
_DUMMY_PASSWORD = "inventoryflow-timing-dummy"


@dataclass(frozen=True)
class AuthResult:
    access_token: str
    refresh_token: str
    user: UserPublic


class AuthService:
    """Authentication flows over injected collaborators."""

    def __init__(
        self,
        resolver: IdentityResolver,
        hasher: PasswordHasher,
        tokens: TokenService,
        audit: AuditLogger,
        refresh_registry: RefreshTokenRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._resolver = resolver
        self._hasher = hasher
        self._tokens = tokens
        self._audit = audit
        self._refresh_registry = refresh_registry
        self._clock = clock or (lambda: datetime.now(UTC))
        self._dummy_hash: str | None = None

    @property
    def resolver(self) -> IdentityResolver:
        return self._resolver

    @property
    def tokens(self) -> TokenService:
        return self._tokens

    async def login(
        self,
        identifier: str,
        password: str,
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> AuthResult:
        """
        Authenticate with email/username and password; return fresh tokens and the user.
        Raises UnauthorizedError for unknown identifier, wrong password or deactivated account.
        """
        user = await self._resolver.find_by_identifier(identifier, include_inactive=True)
        if user is None:
            # Burn the same Argon2 cost as a real check so timing does not reveal the miss
            await asyncio.to_thread(self._verify_dummy, password)
            logger.info("Login rejected: unknown identifier")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not user.is_active:
            logger.info("Login rejected: account deactivated", extra={"user_id": user.id})
            raise UnauthorizedError(ACCOUNT_DEACTIVATED)

        if not await asyncio.to_thread(self._hasher.verify, password, user.password_hash):
            logger.info("Login rejected: invalid password", extra={"user_id": user.id})
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if self._hasher.needs_rehash(user.password_hash):
            await self._rehash(user, password)

        # Independent of each other; all settle before responding
        tokens, *side_effects = await asyncio.gather(
            asyncio.to_thread(self._issue_pair, user),
            self._touch_last_login(user.id),
            self._audit.record_login(user.id, client_ip, user_agent),
            return_exceptions=True,
        )
        for outcome in side_effects:
            if isinstance(outcome, Exception):
                logger.error(
                    "Login bookkeeping failed",
                    extra={"user_id": user.id, "error_type": type(outcome).__name__},
                )
        if isinstance(tokens, BaseException):
            raise tokens
        access_token, refresh_token = tokens
        logger.info("User logged in", extra={"user_id": user.id})
        return AuthResult(
            access_token=access_token,
            refresh_token=refresh_token,
            user=UserPublic.from_record(user),
        )

    async def refresh(self, refresh_token: str) -> AuthResult:
        """
        Exchange a refresh token for a new access token and a new refresh token.
        The user is re-resolved so deactivation takes effect on the next refresh.
        The presented token is retired only once the new pair has been issued,
        so a failed refresh leaves it usable.
        """
        claims = self._tokens.verify_refresh_token(refresh_token)

        if self._refresh_registry is not None and self._refresh_registry.is_used(claims.jti):
            self._reject_reuse(claims.user_id, claims.jti)

        try:
            user = await self._resolver.find_by_id(claims.user_id, raise_on_error=True)
        except SQLAlchemyError as e:
            raise AppError("Failed to refresh token") from e
        if user is None:
            logger.info("Refresh rejected: user unavailable", extra={"user_id": claims.user_id})
            raise UnauthorizedError(USER_UNAVAILABLE, code="user_not_found")

        access_token, new_refresh_token = self._issue_pair(user)

        # A concurrent refresh may have claimed the token meanwhile; the new pair is discarded
        if self._refresh_registry is not None and not self._refresh_registry.mark_used(
            claims.jti, claims.expires_at
        ):
            self._reject_reuse(claims.user_id, claims.jti)

        return AuthResult(
            access_token=access_token,
            refresh_token=new_refresh_token,
            user=UserPublic.from_record(user),
        )

    async def logout(
        self,
        user_id: str | None = None,
        refresh_token: str | None = None,
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        """Idempotent logout. Retires the presented refresh token and audits authenticated callers."""
        if refresh_token and self._refresh_registry is not None:
            try:
                claims = self._tokens.verify_refresh_token(refresh_token)
            except UnauthorizedError:
                # Already expired or forged: nothing to retire
                pass
            else:
                self._refresh_registry.mark_used(claims.jti, claims.expires_at)
        if user_id:
            await self._audit_safely(
                self._audit.record_logout(user_id, client_ip, user_agent), "logout", user_id
            )
            logger.info("User logged out", extra={"user_id": user_id})

    async def register(
        self,
        data: RegisterRequest,
        created_by_user_id: str | None = None,
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> UserPublic:
        """
        Create a user account. Raises ConflictError for a duplicate email or username
        (checked before any hashing) and ValidationError for an unknown role.
        """
        store = self._resolver.store
        if await asyncio.to_thread(store.email_exists, data.email):
            raise ConflictError(EMAIL_TAKEN, code="email_taken")
        if await asyncio.to_thread(store.username_exists, data.username):
            raise ConflictError(USERNAME_TAKEN, code="username_taken")
        if not await asyncio.to_thread(store.role_exists, data.role_id):
            raise ValidationError("Role not found", code="role_not_found")

        password_hash = await asyncio.to_thread(self._hasher.hash, data.password)

        try:
            created = await asyncio.to_thread(
                store.create_user,
                NewUser(
                    email=data.email,
                    username=data.username,
                    password_hash=password_hash,
                    first_name=data.first_name,
                    last_name=data.last_name,
                    role_id=data.role_id,
                ),
            )
        except ConflictError:
            raise
        except Exception as e:
            logger.exception("Failed to create the user", extra={"username": data.username})
            raise AppError("Failed to create user account") from e

        if created_by_user_id:
            await self._audit_safely(
                self._audit.record_user_creation(
                    created.id,
                    created.email,
                    created.username,
                    created_by_user_id,
                    client_ip,
                    user_agent,
                    first_name=created.first_name,
                    last_name=created.last_name,
                ),
                "user creation",
                created_by_user_id,
            )
        logger.info(
            "User account created",
            extra={"user_id": created.id, "created_by": created_by_user_id},
        )
        return UserPublic.from_record(created)

    def _reject_reuse(self, user_id: str, jti: str) -> None:
        logger.warning("Refresh token reuse detected", extra={"user_id": user_id, "jti": jti})
        raise UnauthorizedError(REFRESH_TOKEN_REUSED, code="token_reused")

    async def _audit_safely(self, record: Awaitable[None], event: str, user_id: str) -> None:
        """Await an audit write; failures are logged and never fail the calling flow."""
        try:
            await record
        except Exception:
            logger.exception("Failed to record audit event", extra={"audit_event": event, "user_id": user_id})

    def _issue_pair(self, user: UserRecord) -> tuple[str, str]:
        return (
            self._tokens.issue_access_token(user.id, user.email, user.role_name),
            self._tokens.issue_refresh_token(user.id),
        )

    async def _rehash(self, user: UserRecord, password: str) -> None:
        """Upgrade the stored hash to current parameters; failures only logged."""
        try:
            new_hash = await asyncio.to_thread(self._hasher.hash, password)
            await asyncio.to_thread(self._resolver.store.update_password, user.id, new_hash)
            logger.info(
                "User password updated due to security parameters",
                extra={"user_id": user.id},
            )
        except Exception:
            # User can still log in; the rehash is retried on the next login
            logger.exception(
                "Failed to update user password due to security parameters",
                extra={"user_id": user.id},
            )

    async def _touch_last_login(self, user_id: str) -> None:
        try:
            await asyncio.to_thread(
                self._resolver.store.update_last_login, user_id, self._clock()
            )
        except Exception:
            logger.exception("Failed to update last login", extra={"user_id": user_id})

    def _verify_dummy(self, password: str) -> None:
        if self._dummy_hash is None:
            self._dummy_hash = self._hasher.hash(_DUMMY_PASSWORD)
        self._hasher.verify(password, self._dummy_hash)
