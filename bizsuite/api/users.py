"""
User management API routes.

Provides CRUD operations for the users of the current organization.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bizsuite.api.pagination import PageParams, Pagination, apply_search, page_params, paginate
from bizsuite.database import get_db
from bizsuite.middleware.auth import get_current_active_user, get_org_from_user, require_permissions
from bizsuite.models import Role, User, UserRole
from bizsuite.security import hash_password
from bizsuite.services.audit import commit_with_audit

router = APIRouter(prefix="/api/v1/users", tags=["users"])


# Pydantic schemas
class UserCreate(BaseModel):
    """Schema for creating a new user."""
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8)
    role: str = Field(default="member", min_length=1, max_length=100)  # role slug


class UserUpdate(BaseModel):
    """Schema for updating a user."""
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    password: Optional[str] = Field(None, min_length=8)
    is_active: Optional[bool] = None
    role: Optional[str] = Field(None, min_length=1, max_length=100)


class UserResponse(BaseModel):
    """Schema for user response."""
    id: UUID
    organization_id: UUID
    email: str
    full_name: str
    is_active: bool
    is_verified: bool
    last_login_at: Optional[datetime]
    created_at: datetime
    roles: List[str] = []


class UserList(BaseModel):
    users: List[UserResponse]
    pagination: Pagination


def to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        organization_id=user.organization_id,
        email=user.email,
        full_name=user.full_name,
        is_active=user.is_active,
        is_verified=user.is_verified,
        last_login_at=user.last_login_at,
        created_at=user.created_at,
        roles=sorted(
            ur.role.slug for ur in user.roles if ur.role.organization_id == user.organization_id
        ),
    )


def users_query(organization_id: UUID):
    return (
        select(User)
        .options(selectinload(User.roles).selectinload(UserRole.role))
        .where(User.organization_id == organization_id, User.deleted_at.is_(None))
    )


async def get_org_user(db: AsyncSession, user_id: UUID, organization_id: UUID) -> User:
    result = await db.execute(users_query(organization_id).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return user


async def get_org_role(db: AsyncSession, slug: str, organization_id: UUID) -> Role:
    result = await db.execute(
        select(Role).where(Role.slug == slug, Role.organization_id == organization_id)
    )
    role = result.scalar_one_or_none()

    if not role:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Role '{slug}' does not exist in this organization",
        )

    return role


@router.get("", response_model=UserList)
async def list_users(
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """List users of the current organization."""
    stmt = users_query(current_user.organization_id)
    stmt = apply_search(stmt, search, User.full_name, User.email)
    if is_active is not None:
        stmt = stmt.where(User.is_active == is_active)

    users, pagination = await paginate(db, stmt.order_by(User.created_at.desc()), params)
    return {"users": [to_response(u) for u in users], "pagination": pagination}


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("admin:manage")),
):
    """
    Create a user in the current organization.

    Requires 'admin:manage' permission.

    Raises:
        HTTPException: 409 if the email exists, 403 if the user limit is reached,
            400 if the role is unknown
    """
    organization = await get_org_from_user(current_user=current_user, db=db)

    user_count = (
        await db.execute(
            select(func.count(User.id)).where(
                User.organization_id == organization.id, User.deleted_at.is_(None)
            )
        )
    ).scalar_one()

    if user_count >= organization.max_users:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Organization has reached maximum users limit ({organization.max_users})",
        )

    # Email is unique across organizations
    email_result = await db.execute(
        select(User).where(User.email == user.email, User.deleted_at.is_(None))
    )
    if email_result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User with email '{user.email}' already exists",
        )

    role = await get_org_role(db, user.role, organization.id)

    db_user = User(
        organization_id=organization.id,
        email=user.email,
        full_name=user.full_name,
        hashed_password=hash_password(user.password),
        is_active=True,
    )
    db_user.roles.append(UserRole(role=role, assigned_by=current_user.id))
    db.add(db_user)

    await commit_with_audit(
        db, db_user, current_user, "USER_CREATED", "USER", details={"role": role.slug}, refresh=False
    )
    return to_response(db_user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return to_response(await get_org_user(db, user_id, current_user.organization_id))


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    user_update: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("admin:manage")),
):
    """
    Update a user of the current organization.

    A new role replaces the roles the user holds in this organization.
    """
    user = await get_org_user(db, user_id, current_user.organization_id)

    update_data = user_update.model_dump(exclude_unset=True)
    role_slug = update_data.pop("role", None)
    password = update_data.pop("password", None)

    for field, value in update_data.items():
        setattr(user, field, value)

    if password:
        user.hashed_password = hash_password(password)

    if role_slug:
        role = await get_org_role(db, role_slug, current_user.organization_id)
        for user_role in list(user.roles):
            if user_role.role.organization_id == current_user.organization_id and user_role.role_id != role.id:
                user.roles.remove(user_role)
        if all(user_role.role_id != role.id for user_role in user.roles):
            user.roles.append(UserRole(role=role, assigned_by=current_user.id))

    fields = sorted(update_data) + (["password"] if password else []) + (["role"] if role_slug else [])
    await commit_with_audit(
        db, user, current_user, "USER_UPDATED", "USER", details={"fields": fields}, refresh=False
    )
    return to_response(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("admin:manage")),
):
    """
    Soft delete a user.

    Raises:
        HTTPException: 400 when deleting yourself
    """
    user = await get_org_user(db, user_id, current_user.organization_id)

    if user.id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account"
        )

    user.soft_delete()
    await commit_with_audit(db, user, current_user, "USER_DELETED", "USER", refresh=False)
