"""
Security API routes: audit log browsing.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.api.pagination import PageParams, Pagination, apply_status, page_params, paginate
from bizsuite.database import get_db
from bizsuite.middleware.auth import require_permissions
from bizsuite.models import AuditLog, User

router = APIRouter(prefix="/api/v1/security", tags=["security"])


class AuditLogResponse(BaseModel):
    id: UUID
    user_id: Optional[UUID]
    event_type: str
    action: str
    resource: Optional[str]
    resource_id: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    status: str
    error_message: Optional[str]
    context_data: Optional[Dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogList(BaseModel):
    audit_logs: List[AuditLogResponse]
    pagination: Pagination


@router.get("/audit-logs", response_model=AuditLogList)
async def list_audit_logs(
    user_id: Optional[UUID] = None,
    action: Optional[str] = None,
    resource: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("security:read")),
):
    """
    Audit events of the organization, newest first.

    Args:
        user_id: Events caused by one user
        action: Exact action, e.g. DEAL_CREATED
        resource: Exact resource, e.g. DEAL
        start_date: Earliest event time
        end_date: Latest event time
    """
    stmt = select(AuditLog).where(AuditLog.organization_id == current_user.organization_id)
    stmt = apply_status(stmt, AuditLog.action, action)
    stmt = apply_status(stmt, AuditLog.resource, resource)
    if user_id:
        stmt = stmt.where(AuditLog.user_id == user_id)
    if start_date:
        stmt = stmt.where(AuditLog.created_at >= start_date)
    if end_date:
        stmt = stmt.where(AuditLog.created_at <= end_date)

    logs, pagination = await paginate(db, stmt.order_by(AuditLog.created_at.desc()), params)
    return {"audit_logs": logs, "pagination": pagination}
