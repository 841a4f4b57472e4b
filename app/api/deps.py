"""Process-wide service instances for FastAPI dependencies.

Each factory is cached so collaborators are built once from settings at
first use; tests replace get_auth_service through app.dependency_overrides.
"""

from functools import lru_cache

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.security import get_password_hasher
from app.core.tokens import TokenService, build_token_service
from app.services.audit import SqlAlchemyAuditLogger
from app.services.auth import AuthService
from app.services.identity import IdentityResolver, SqlAlchemyUserStore
from app.services.refresh_registry import InMemoryRefreshTokenRegistry


@lru_cache
def get_token_service() -> TokenService:
    return build_token_service(get_settings())


@lru_cache
def get_refresh_registry() -> InMemoryRefreshTokenRegistry | None:
    if not get_settings().REFRESH_TOKEN_REUSE_DETECTION:
        return None
    return InMemoryRefreshTokenRegistry()


@lru_cache
def get_auth_service() -> AuthService:
    """Wire AuthService against the SQLAlchemy user store and audit log."""
    return AuthService(
        resolver=IdentityResolver(SqlAlchemyUserStore(SessionLocal)),
        hasher=get_password_hasher(),
        tokens=get_token_service(),
        audit=SqlAlchemyAuditLogger(SessionLocal),
        refresh_registry=get_refresh_registry(),
    )
