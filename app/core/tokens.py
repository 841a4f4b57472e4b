"""Signed access/refresh tokens: issuance, verification and TTL parsing.

Access and refresh tokens are HS256 JWTs signed with two independent secrets,
so one kind can never be replayed as the other. Both carry issuer and
audience claims bound to this deployment and a random jti so that tokens
minted within the same second are still distinct. Tokens are stateless:
there is no server-side revocation, only expiry.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import jwt

from app.core.errors import AppError, ConfigurationError, TokenExpiredError, TokenInvalidError

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

EXPIRY_UNITS = {
    "d": 86400,
    "h": 3600,
    "m": 60,
    "s": 1,
}
_EXPIRY_RE = re.compile(r"^(\d+)([a-zA-Z])$")


def parse_expiry(expiry: str) -> int:
    """Convert a duration such as "15m" or "7d" to seconds.

    Raises ConfigurationError for an empty value, a missing number or an
    unsupported unit.
    """
    match = _EXPIRY_RE.match((expiry or "").strip())
    if match is None or match.group(2) not in EXPIRY_UNITS:
        raise ConfigurationError(f"Unsupported expiry format: {expiry}")
    return int(match.group(1)) * EXPIRY_UNITS[match.group(2)]


@dataclass(frozen=True)
class TokenConfig:
    """Immutable signing configuration injected into TokenService."""

    access_secret: str
    refresh_secret: str
    access_ttl_seconds: int = 15 * 60
    refresh_ttl_seconds: int = 7 * 86400
    issuer: str = "InventoryFlow"
    audience: str = "InventoryFlow-users"
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if not self.access_secret or not self.refresh_secret:
            raise ConfigurationError("Token signing secrets must be non-empty")
        if self.access_secret == self.refresh_secret:
            raise ConfigurationError("Access and refresh token secrets must differ")
        if self.access_ttl_seconds <= 0 or self.refresh_ttl_seconds <= 0:
            raise ConfigurationError("Token TTLs must be positive")

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            access_secret=settings.JWT_ACCESS_SECRET.get_secret_value(),
            refresh_secret=settings.JWT_REFRESH_SECRET.get_secret_value(),
            access_ttl_seconds=settings.access_token_ttl_seconds,
            refresh_ttl_seconds=settings.refresh_token_ttl_seconds,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            algorithm=settings.JWT_ALGORITHM,
        )

    def __repr__(self) -> str:
        return (
            f"TokenConfig(issuer={self.issuer!r}, audience={self.audience!r}, "
            f"access_ttl_seconds={self.access_ttl_seconds}, "
            f"refresh_ttl_seconds={self.refresh_ttl_seconds}, algorithm={self.algorithm!r})"
        )


@dataclass(frozen=True)
class AccessTokenClaims:
    user_id: str
    email: str
    role: str | None
    jti: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class RefreshTokenClaims:
    user_id: str
    jti: str
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Issue and verify access/refresh JWTs for one deployment."""

    def __init__(
        self,
        config: TokenConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def config(self) -> TokenConfig:
        return self._config

    def issue_access_token(self, user_id: str, email: str, role: str | None) -> str:
        """Create a signed access token carrying identity and role claims."""
        payload = self._base_claims(user_id, ACCESS_TOKEN_TYPE, self._config.access_ttl_seconds)
        payload["email"] = email
        payload["role"] = role
        return self._sign(payload, self._config.access_secret, ACCESS_TOKEN_TYPE)

    def issue_refresh_token(self, user_id: str) -> str:
        """Create a signed refresh token. No profile claims: sub, type, jti and times only."""
        payload = self._base_claims(user_id, REFRESH_TOKEN_TYPE, self._config.refresh_ttl_seconds)
        return self._sign(payload, self._config.refresh_secret, REFRESH_TOKEN_TYPE)

    def verify_access_token(self, token: str) -> AccessTokenClaims:
        """
        Decode and validate an access token.
        Raises TokenExpiredError when expired, TokenInvalidError on any other problem.
        """
        payload = self._decode(token, self._config.access_secret, ACCESS_TOKEN_TYPE)
        if not payload.get("email") or not isinstance(payload["email"], str):
            raise TokenInvalidError("Invalid access token")
        return AccessTokenClaims(
            user_id=payload["sub"],
            email=payload["email"],
            role=payload.get("role"),
            jti=payload["jti"],
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        )

    def verify_refresh_token(self, token: str) -> RefreshTokenClaims:
        """
        Decode and validate a refresh token.
        Raises TokenExpiredError when expired, TokenInvalidError on any other problem.
        """
        payload = self._decode(token, self._config.refresh_secret, REFRESH_TOKEN_TYPE)
        return RefreshTokenClaims(
            user_id=payload["sub"],
            jti=payload["jti"],
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        )

    def _base_claims(self, user_id: str, token_type: str, ttl_seconds: int) -> dict[str, Any]:
        # Whole seconds, as encoded on the wire
        now = self._clock().replace(microsecond=0)
        return {
            "sub": str(user_id),
            "type": token_type,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + timedelta(seconds=ttl_seconds),
            "iss": self._config.issuer,
            "aud": self._config.audience,
        }

    def _sign(self, payload: dict[str, Any], secret: str, token_type: str) -> str:
        try:
            return jwt.encode(payload, secret, algorithm=self._config.algorithm)
        except (jwt.PyJWTError, NotImplementedError, TypeError, ValueError) as e:
            logger.error(
                "Failed to generate token",
                extra={"token_type": token_type, "error_type": type(e).__name__},
            )
            raise AppError(f"Failed to generate {token_type} token") from e

    def _decode(self, token: str, secret: str, token_type: str) -> dict[str, Any]:
        if not token or not isinstance(token, str):
            raise TokenInvalidError(f"Invalid {token_type} token")
        now = self._clock()
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self._config.algorithm],
                audience=self._config.audience,
                issuer=self._config.issuer,
                options={
                    "require": ["exp", "iat", "sub", "iss", "aud", "jti"],
                    # exp/iat are checked below against the injected clock
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.PyJWTError as e:
            logger.warning(
                "Token verification failed",
                extra={"token_type": token_type, "error_type": type(e).__name__},
            )
            raise TokenInvalidError(f"Invalid {token_type} token") from e

        if payload.get("type") != token_type or not payload.get("sub"):
            logger.warning("Token claims rejected", extra={"token_type": token_type})
            raise TokenInvalidError(f"Invalid {token_type} token")
        exp = payload.get("exp")
        iat = payload.get("iat")
        if not isinstance(exp, int | float) or not isinstance(iat, int | float):
            raise TokenInvalidError(f"Invalid {token_type} token")
        if exp <= now.timestamp():
            logger.info("Expired token presented", extra={"token_type": token_type})
            raise TokenExpiredError(f"{token_type.capitalize()} token has expired")
        return payload


def build_token_service(settings: Settings) -> TokenService:
    """Create a TokenService from application settings."""
    return TokenService(TokenConfig.from_settings(settings))
