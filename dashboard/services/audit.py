"""Audit logging service. Writes and queries immutable AuditLog records.

Usage:
    await AuditService(db).log(AuditEntry(action=AuditAction.CREATE_USER,
                                          resource_type="user",
                                          resource_id=user.public_id,
                                          user=current_user))
"""

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dashboard.db.models import AuditAction, AuditLog, Server, User, utcnow
from dashboard.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class AuditEntry(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    action: AuditAction
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    user: Optional[User] = None
    server: Optional[Server] = None


class AuditLogFilter(BaseModel):
    user_id: Optional[str] = None
    action: Optional[AuditAction] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: int = Field(default=1, ge=1)
    items_per_page: int = Field(default=50, ge=1)


class AuditService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.logs = BaseRepository(AuditLog, db)

    async def log(self, entry: AuditEntry) -> None:
        """Insert an immutable audit log entry.

        Storage failures are logged and rolled back, never raised.
        """
        try:
            audit_log = self.logs.create(
                action=entry.action,
                resource_type=entry.resource_type,
                resource_id=entry.resource_id,
                details=entry.details,
                ip_address=entry.ip_address,
                user_agent=entry.user_agent,
                user=entry.user,
                server=entry.server,
                created_at=utcnow(),
            )
            self.logs.persist(audit_log)
            await self.logs.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(
                "Failed to create audit log entry",
                extra={"action": entry.action.value},
            )
            return

        logger.debug(
            "Audit log entry created",
            extra={
                "action": entry.action.value,
                "resource_type": entry.resource_type,
                "user_id": entry.user.public_id if entry.user else None,
            },
        )

    async def get_audit_logs(
        self, audit_filter: Optional[AuditLogFilter] = None
    ) -> tuple[list[AuditLog], int]:
        """Return one page of audit logs, newest first, plus the total."""
        audit_filter = audit_filter or AuditLogFilter()
        where = []
        if audit_filter.user_id:
            where.append(AuditLog.user.has(User.public_id == audit_filter.user_id))
        if audit_filter.action:
            where.append(AuditLog.action == audit_filter.action)
        if audit_filter.start_date:
            where.append(AuditLog.created_at >= audit_filter.start_date)
        if audit_filter.end_date:
            where.append(AuditLog.created_at <= audit_filter.end_date)

        return await self.logs.find_and_count(
            *where,
            order_by=[AuditLog.created_at.desc(), AuditLog.id.desc()],
            limit=audit_filter.items_per_page,
            offset=(audit_filter.page - 1) * audit_filter.items_per_page,
            options=[selectinload(AuditLog.user), selectinload(AuditLog.server)],
        )
