"""
Tenant API routes.

The current organization of a user and switching between organizations the
user holds a role in.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.api.auth import TokenResponse, issue_tokens
from bizsuite.database import get_db
from bizsuite.middleware.auth import get_current_active_user, get_org_from_user, require_org_admin
from bizsuite.models import Organization, User
from bizsuite.services.audit import commit_with_audit, record_audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tenants", tags=["tenants"])


# Pydantic schemas
class OrganizationResponse(BaseModel):
    """Schema for organization response."""
    id: UUID
    name: str
    slug: str
    domain: Optional[str]
    plan: str
    is_active: bool
    max_users: int
    settings: Optional[Dict[str, Any]]
    contact_email: Optional[str]
    contact_name: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class OrganizationUpdate(BaseModel):
    """Schema for updating the current organization."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    domain: Optional[str] = Field(None, max_length=255)
    plan: Optional[str] = Field(None, pattern=r"^(trial|starter|professional|enterprise)$")
    max_users: Optional[int] = Field(None, ge=1)
    settings: Optional[Dict[str, Any]] = None
    contact_email: Optional[str] = None
    contact_name: Optional[str] = None


class SwitchTenantRequest(BaseModel):
    organization_id: UUID


class SwitchTenantResponse(TokenResponse):
    organization: OrganizationResponse


@router.get("/current", response_model=OrganizationResponse)
async def get_current_tenant(organization: Organization = Depends(get_org_from_user)):
    """Organization the caller is currently working in."""
    return organization


@router.put("/current", response_model=OrganizationResponse)
async def update_current_tenant(
    org_update: OrganizationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_org_admin),
):
    """
    Update the current organization.

    Requires the organization's admin role.

    Args:
        org_update: Fields to update
        db: Database session
        current_user: Organization admin

    Returns:
        Updated organization
    """
    organization = await get_org_from_user(current_user=current_user, db=db)

    update_data = org_update.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(organization, field, value)

    return await commit_with_audit(
        db,
        organization,
        current_user,
        "ORGANIZATION_UPDATED",
        "ORGANIZATION",
        details={"fields": sorted(update_data)},
    )


@router.post("/switch", response_model=SwitchTenantResponse)
async def switch_tenant(
    switch_data: SwitchTenantRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Switch the caller's active organization.

    The caller must hold a role in the target organization. New tokens
    bound to the target organization are issued.

    Raises:
        HTTPException: 404 if the organization does not exist, 403 if the
            caller has no role in it
    """
    result = await db.execute(
        select(Organization).where(
            Organization.id == switch_data.organization_id,
            Organization.deleted_at.is_(None),
            Organization.is_active.is_(True),
        )
    )
    organization = result.scalar_one_or_none()

    if organization is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")

    is_member = any(
        user_role.role.organization_id == organization.id for user_role in current_user.roles
    )
    if not is_member:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied: You do not belong to this organization",
        )

    previous_org_id = current_user.organization_id
    current_user.organization_id = organization.id
    record_audit(
        db,
        organization_id=organization.id,
        user_id=current_user.id,
        action="TENANT_SWITCHED",
        resource="ORGANIZATION",
        resource_id=organization.id,
        details={"from": str(previous_org_id)},
        request=request,
    )
    await db.commit()

    logger.info(f"User {current_user.email} switched to organization {organization.slug}")

    tokens = issue_tokens(current_user)
    return SwitchTenantResponse(
        **tokens.model_dump(),
        organization=OrganizationResponse.model_validate(organization),
    )
