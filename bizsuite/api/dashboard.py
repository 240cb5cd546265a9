"""
Dashboard statistics across the business modules of an organization.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bizsuite.database import get_db
from bizsuite.middleware.auth import get_current_active_user
from bizsuite.models import (
    AIInsight,
    AuditLog,
    Customer,
    Deal,
    Employee,
    Invoice,
    Lead,
    Leave,
    Project,
    Task,
    User,
)
from bizsuite.models.base import utc_now

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


class RecentActivity(BaseModel):
    id: UUID
    action: str
    resource: Optional[str]
    resource_id: Optional[str]
    user_email: Optional[str]
    created_at: datetime


class DashboardStats(BaseModel):
    total_customers: int
    active_customers: int
    total_leads: int
    new_leads_this_month: int
    leads_by_status: List[Dict[str, Any]]
    total_users: int
    open_deals: int
    pipeline_value: float
    employees: int
    pending_leave_requests: int
    outstanding_invoices: int
    outstanding_amount: float
    active_projects: int
    open_tasks: int
    unread_insights: int
    recent_activities: List[RecentActivity]


async def _count(db: AsyncSession, model, organization_id: UUID, *conditions) -> int:
    stmt = select(func.count(model.id)).where(model.organization_id == organization_id, *conditions)
    if hasattr(model, "deleted_at"):
        stmt = stmt.where(model.deleted_at.is_(None))
    return (await db.execute(stmt)).scalar_one()


async def _sum(db: AsyncSession, column, model, organization_id: UUID, *conditions) -> float:
    stmt = select(func.coalesce(func.sum(column), 0.0)).where(
        model.organization_id == organization_id, model.deleted_at.is_(None), *conditions
    )
    return float((await db.execute(stmt)).scalar_one())


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Headline counts per module plus the ten latest audit events."""
    org_id = current_user.organization_id
    start_of_month = utc_now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    leads_by_status = await db.execute(
        select(Lead.status, func.count(Lead.id))
        .where(Lead.organization_id == org_id, Lead.deleted_at.is_(None))
        .group_by(Lead.status)
    )

    users_stmt = select(func.count(User.id)).where(
        User.organization_id == org_id, User.is_active.is_(True), User.deleted_at.is_(None)
    )

    recent = await db.execute(
        select(AuditLog)
        .options(selectinload(AuditLog.user))
        .where(AuditLog.organization_id == org_id)
        .order_by(AuditLog.created_at.desc())
        .limit(10)
    )

    outstanding = (Invoice.status.in_(("SENT", "OVERDUE")),)

    return {
        "total_customers": await _count(db, Customer, org_id),
        "active_customers": await _count(db, Customer, org_id, Customer.status == "ACTIVE"),
        "total_leads": await _count(db, Lead, org_id),
        "new_leads_this_month": await _count(db, Lead, org_id, Lead.created_at >= start_of_month),
        "leads_by_status": [{"status": s, "count": c} for s, c in leads_by_status.all()],
        "total_users": (await db.execute(users_stmt)).scalar_one(),
        "open_deals": await _count(db, Deal, org_id, Deal.status == "OPEN"),
        "pipeline_value": await _sum(db, Deal.amount, Deal, org_id, Deal.status == "OPEN"),
        "employees": await _count(db, Employee, org_id, Employee.status != "TERMINATED"),
        "pending_leave_requests": await _count(db, Leave, org_id, Leave.status == "PENDING"),
        "outstanding_invoices": await _count(db, Invoice, org_id, *outstanding),
        "outstanding_amount": await _sum(db, Invoice.total_amount, Invoice, org_id, *outstanding),
        "active_projects": await _count(db, Project, org_id, Project.status == "ACTIVE"),
        "open_tasks": await _count(db, Task, org_id, Task.status != "DONE"),
        "unread_insights": await _count(db, AIInsight, org_id, AIInsight.is_read.is_(False)),
        "recent_activities": [
            {
                "id": log.id,
                "action": log.action,
                "resource": log.resource,
                "resource_id": log.resource_id,
                "user_email": log.user.email if log.user else None,
                "created_at": log.created_at,
            }
            for log in recent.scalars().all()
        ],
    }
