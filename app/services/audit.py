"""Audit trail for authentication events. Writes are best-effort: failures are logged, never raised."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from sqlalchemy.orm import sessionmaker

from app.core.database import session_scope
from app.models import AuditAction, AuditLog

logger = logging.getLogger(__name__)

USER_ENTITY = "User"


class AuditLogger(Protocol):
    """Audit collaborator used by the auth flows. Implementations must not raise."""

    async def record_login(
        self, user_id: str, ip_address: str | None = None, user_agent: str | None = None
    ) -> None: ...

    async def record_logout(
        self, user_id: str, ip_address: str | None = None, user_agent: str | None = None
    ) -> None: ...

    async def record_user_creation(
        self,
        new_user_id: str,
        email: str,
        username: str,
        actor_user_id: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> None: ...


class SqlAlchemyAuditLogger:
    """AuditLogger writing rows to audit_logs in a worker thread."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    async def record_login(
        self, user_id: str, ip_address: str | None = None, user_agent: str | None = None
    ) -> None:
        await self._record(
            "Failed to log login audit",
            action=AuditAction.LOGIN,
            entity_id=user_id,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    async def record_logout(
        self, user_id: str, ip_address: str | None = None, user_agent: str | None = None
    ) -> None:
        await self._record(
            "Failed to log logout audit",
            action=AuditAction.LOGOUT,
            entity_id=user_id,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    async def record_user_creation(
        self,
        new_user_id: str,
        email: str,
        username: str,
        actor_user_id: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> None:
        await self._record(
            "Failed to log user creation audit",
            action=AuditAction.CREATE,
            entity_id=new_user_id,
            user_id=actor_user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            new_values={
                "email": email,
                "username": username,
                "firstName": first_name,
                "lastName": last_name,
            },
        )

    async def _record(self, failure_message: str, **fields: Any) -> None:
        try:
            await asyncio.to_thread(self._write, **fields)
        except Exception:
            logger.exception(
                failure_message,
                extra={"audit_action": fields["action"].value, "entity_id": fields["entity_id"]},
            )

    def _write(
        self,
        action: AuditAction,
        entity_id: str,
        user_id: str | None,
        ip_address: str | None,
        user_agent: str | None,
        new_values: dict[str, Any] | None = None,
    ) -> None:
        with session_scope(self._session_factory) as session:
            session.add(
                AuditLog(
                    action=action,
                    entity_type=USER_ENTITY,
                    entity_id=entity_id,
                    user_id=user_id,
                    ip_address=ip_address,
                    user_agent=(user_agent or "")[:512] or None,
                    new_values=new_values,
                )
            )
