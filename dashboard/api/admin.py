"""Admin routes.

GET /admin/audit-log    Paginated audit trail (25 per page), filterable
"""

import math
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from dashboard.api.deps import get_audit_service, require_admin
from dashboard.db.models import AuditAction, AuditLog
from dashboard.services.audit import AuditLogFilter, AuditService

router = APIRouter(dependencies=[Depends(require_admin)])

AUDIT_LOGS_PER_PAGE = 25


class AuditLogItem(BaseModel):
    id: int
    action: str
    resource_type: Optional[str]
    resource_id: Optional[str]
    details: Optional[dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime
    user_id: Optional[str]
    username: Optional[str]
    server_id: Optional[str]
    server_name: Optional[str]


class AuditLogResponse(BaseModel):
    logs: list[AuditLogItem]
    total: int
    total_pages: int
    current_page: int


def _item(log: AuditLog) -> AuditLogItem:
    return AuditLogItem(
        id=log.id,
        action=log.action.value,
        resource_type=log.resource_type,
        resource_id=log.resource_id,
        details=log.details,
        ip_address=log.ip_address,
        user_agent=log.user_agent,
        created_at=log.created_at,
        user_id=log.user.public_id if log.user else None,
        username=log.user.username if log.user else None,
        server_id=log.server.public_id if log.server else None,
        server_name=log.server.name if log.server else None,
    )


@router.get("/audit-log", response_model=AuditLogResponse)
async def audit_log(
    page: int = Query(default=1, ge=1),
    user_id: Optional[str] = None,
    action: Optional[AuditAction] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    audit: AuditService = Depends(get_audit_service),
):
    logs, total = await audit.get_audit_logs(
        AuditLogFilter(
            user_id=user_id,
            action=action,
            start_date=start_date,
            end_date=end_date,
            page=page,
            items_per_page=AUDIT_LOGS_PER_PAGE,
        )
    )
    return AuditLogResponse(
        logs=[_item(log) for log in logs],
        total=total,
        total_pages=math.ceil(total / AUDIT_LOGS_PER_PAGE),
        current_page=page,
    )
