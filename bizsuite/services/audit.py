"""Audit log recording for data mutations and security events."""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.models import AuditLog


def record_audit(
    db: AsyncSession,
    *,
    organization_id: UUID,
    user_id: Optional[UUID],
    action: str,
    resource: Optional[str] = None,
    resource_id: Optional[Any] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
    status: str = "success",
    error_message: Optional[str] = None,
) -> AuditLog:
    """
    Add an audit row to the session.

    The row is committed together with the mutation it describes.

    Args:
        action: Upper-case action name, e.g. "DEAL_CREATED"
        resource: Upper-case resource name, e.g. "DEAL"
        resource_id: Primary key of the affected record
        details: Extra JSON context
        request: Incoming request, for client address and user agent
    """
    entry = AuditLog(
        organization_id=organization_id,
        user_id=user_id,
        event_type=action.lower(),
        action=action,
        resource=resource,
        resource_id=str(resource_id) if resource_id is not None else None,
        status=status,
        error_message=error_message,
        context_data=details,
    )
    if request is not None:
        entry.ip_address = request.client.host if request.client else None
        entry.user_agent = request.headers.get("user-agent")

    db.add(entry)
    return entry


async def commit_with_audit(
    db: AsyncSession,
    record,
    user,
    action: str,
    resource: str,
    details: Optional[Dict[str, Any]] = None,
    refresh: bool = True,
):
    """Flush a mutation, add its audit row and commit both together."""
    await db.flush()
    record_audit(
        db,
        organization_id=user.organization_id,
        user_id=user.id,
        action=action,
        resource=resource,
        resource_id=record.id,
        details=details,
    )
    await db.commit()
    if refresh:
        await db.refresh(record)
    return record
