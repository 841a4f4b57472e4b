"""SQLAlchemy ORM models."""

from app.models.audit_log import AuditLog
from app.models.base import Base
from app.models.enums import AuditAction, Permission
from app.models.role import Role, RolePermission
from app.models.user import User

__all__ = ["AuditAction", "AuditLog", "Base", "Permission", "Role", "RolePermission", "User"]
