"""
JWT authentication and RBAC authorization middleware.

Provides FastAPI dependencies for:
- JWT session validation
- User authentication
- Permission-based authorization
- Tenant (organization) resolution
"""

from typing import List, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from bizsuite.config.settings import get_settings
from bizsuite.database import get_db
from bizsuite.models import User, Organization, Role, Permission, UserRole


# Missing credentials are reported as 401 below rather than by HTTPBearer
security = HTTPBearer(auto_error=False)

settings = get_settings()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Validate JWT token and return current user.

    Args:
        credentials: HTTP Authorization header with Bearer token
        db: Database session

    Returns:
        Authenticated user

    Raises:
        HTTPException: 401 if the token is missing, invalid, or the user is gone
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
        user_id: Optional[str] = payload.get("sub")
        if user_id is None or payload.get("type") != "access":
            raise credentials_exception
        user_uuid = UUID(user_id)

    except (JWTError, ValueError):
        raise credentials_exception

    stmt = (
        select(User)
        .options(
            selectinload(User.organization),
            selectinload(User.roles).selectinload(UserRole.role).selectinload(Role.permissions)
        )
        .where(User.id == user_uuid, User.deleted_at.is_(None))
    )
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception

    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get current user and verify they are active.

    Raises:
        HTTPException: If user is inactive
    """
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )
    return current_user


def get_user_permissions(user: User) -> List[Permission]:
    """Collect the permissions the user holds in their active organization."""
    permissions = []
    for user_role in user.roles:
        role = user_role.role
        if role.organization_id not in (None, user.organization_id):
            continue
        permissions.extend(role.permissions)
    return permissions


def has_permission(user: User, permission_name: str) -> bool:
    """Check a single "resource:action" permission, honouring wildcards."""
    return any(p.grants(permission_name) for p in get_user_permissions(user))


def require_permissions(*permission_names: str):
    """
    Dependency factory for permission-based authorization.

    Usage:
        @router.delete("/{deal_id}")
        async def delete_deal(current_user: User = Depends(require_permissions("crm:delete"))):
            ...

    Args:
        *permission_names: Required permission names (e.g., "finance:approve")

    Returns:
        FastAPI dependency function

    Raises:
        HTTPException: If user doesn't have required permissions
    """
    async def permission_checker(
        current_user: User = Depends(get_current_active_user)
    ) -> User:
        for required_permission in permission_names:
            if not has_permission(current_user, required_permission):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Permission denied: {required_permission} required"
                )

        return current_user

    return permission_checker


async def require_org_admin(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """
    Require user to be an admin of their active organization.

    Raises:
        HTTPException: If user is not an org admin
    """
    is_admin = any(
        user_role.role.slug == "admin" and user_role.role.organization_id == current_user.organization_id
        for user_role in current_user.roles
    )

    if not is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization admin access required"
        )

    return current_user


async def get_org_from_user(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
) -> Organization:
    """
    Get the active organization of the current user.

    Raises:
        HTTPException: If organization not found
    """
    stmt = select(Organization).where(
        Organization.id == current_user.organization_id, Organization.deleted_at.is_(None)
    )
    result = await db.execute(stmt)
    organization = result.scalar_one_or_none()

    if organization is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found"
        )

    return organization
