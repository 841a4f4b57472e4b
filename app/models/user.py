"""ORM model for application users (auth and RBAC)."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, func, true
from sqlalchemy.orm import relationship

from app.models.base import Base


class User(Base):
    """
    User account for JWT authentication and role-based access control.

    Users are deactivated (is_active=False) rather than deleted. password_hash
    is an Argon2id PHC string; it is only ever passed to the password hasher.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(254), nullable=False, unique=True, index=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    role_id = Column(String(36), ForeignKey("roles.id"), nullable=False, index=True)

    role = relationship("Role", back_populates="users")

    def __repr__(self) -> str:
        return f"<User id={self.id!r} username={self.username!r}>"
