"""ORM model for the append-only audit trail."""

import uuid

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, String, func

from app.models.base import Base
from app.models.enums import AuditAction


class AuditLog(Base):
    """One audited action. user_id is the acting user (None for system actions)."""

    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    action = Column(Enum(AuditAction, name="audit_action"), nullable=False, index=True)
    entity_type = Column(String(64), nullable=False, index=True)
    entity_id = Column(String(36), nullable=False)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
