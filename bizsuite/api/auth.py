"""
Authentication API routes.

Provides endpoints for:
- Registration of a new organization with its first (admin) user
- User login (JWT generation)
- Token refresh
- User logout
- Current user information
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from jose import JWTError
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.config.settings import get_settings
from bizsuite.database import get_db
from bizsuite.middleware.auth import get_current_active_user, get_user_permissions
from bizsuite.models import User, UserRole
from bizsuite.models.base import utc_now
from bizsuite.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
    verify_token,
)
from bizsuite.services.audit import record_audit
from bizsuite.services.tenants import provision_organization

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["authentication"])


# Pydantic schemas
class LoginRequest(BaseModel):
    """Schema for login request."""

    email: EmailStr
    password: str = Field(..., min_length=8)


class TokenResponse(BaseModel):
    """Schema for token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class RefreshTokenRequest(BaseModel):
    """Schema for refresh token request."""

    refresh_token: str


class RegisterRequest(BaseModel):
    """Schema for registering a new organization and its admin."""

    organization_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8)


class RegisterResponse(TokenResponse):
    """Schema for registration response."""

    id: UUID
    email: str
    full_name: str
    organization_id: UUID
    organization_slug: str
    message: str = "Registration successful"


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str


def issue_tokens(user: User) -> TokenResponse:
    """Access and refresh token pair for the user's active organization."""
    return TokenResponse(
        access_token=create_access_token(
            user_id=user.id, organization_id=user.organization_id, email=user.email
        ),
        refresh_token=create_refresh_token(user_id=user.id),
        token_type="bearer",
        expires_in=get_settings().ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(register_data: RegisterRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """
    Register a new organization and its first user.

    The user receives the organization's admin role.

    Args:
        register_data: Organization name and user details
        db: Database session

    Returns:
        Created user, organization and a token pair

    Raises:
        HTTPException: 409 if the email is already registered
    """
    result = await db.execute(
        select(User).where(User.email == register_data.email, User.deleted_at.is_(None))
    )
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User with email '{register_data.email}' already exists",
        )

    organization, roles = await provision_organization(
        db,
        register_data.organization_name,
        contact_email=register_data.email,
        contact_name=register_data.full_name,
    )

    user = User(
        organization_id=organization.id,
        email=register_data.email,
        full_name=register_data.full_name,
        hashed_password=hash_password(register_data.password),
        is_active=True,
        is_verified=False,
    )
    user.roles.append(UserRole(role=roles["admin"]))
    db.add(user)
    await db.flush()

    record_audit(
        db,
        organization_id=organization.id,
        user_id=user.id,
        action="REGISTER",
        resource="ORGANIZATION",
        resource_id=organization.id,
        request=request,
    )
    await db.commit()

    logger.info(f"Registered organization {organization.slug} with admin {user.email}")

    tokens = issue_tokens(user)
    return RegisterResponse(
        **tokens.model_dump(),
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        organization_id=organization.id,
        organization_slug=organization.slug,
    )


@router.post("/login", response_model=TokenResponse)
async def login(login_data: LoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """
    Authenticate user and return JWT tokens.

    Args:
        login_data: Email and password
        db: Database session

    Returns:
        Access and refresh tokens

    Raises:
        HTTPException: 401 if credentials are invalid, 403 if the account is disabled
    """
    result = await db.execute(
        select(User).where(User.email == login_data.email, User.deleted_at.is_(None))
    )
    user = result.scalar_one_or_none()

    if not user or not user.hashed_password or not verify_password(login_data.password, user.hashed_password):
        if user is not None:
            record_audit(
                db,
                organization_id=user.organization_id,
                user_id=user.id,
                action="LOGIN_FAILED",
                resource="USER",
                resource_id=user.id,
                request=request,
                status="failure",
                error_message="Invalid password",
            )
            await db.commit()
        logger.warning(f"Failed login attempt for {login_data.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    user.last_login_at = utc_now()
    record_audit(
        db,
        organization_id=user.organization_id,
        user_id=user.id,
        action="LOGIN",
        resource="USER",
        resource_id=user.id,
        request=request,
    )
    await db.commit()

    return issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(refresh_data: RefreshTokenRequest, db: AsyncSession = Depends(get_db)):
    """
    Refresh access token using refresh token.

    Args:
        refresh_data: Refresh token
        db: Database session

    Returns:
        New access and refresh tokens

    Raises:
        HTTPException: If refresh token is invalid
    """
    try:
        payload = verify_token(refresh_data.refresh_token, token_type="refresh")
        user_id = UUID(payload.get("sub"))
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except (TypeError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id, User.deleted_at.is_(None)))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    return issue_tokens(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Logout user.

    Sessions are stateless JWTs; the client discards its tokens and the
    logout is recorded in the audit log.
    """
    record_audit(
        db,
        organization_id=current_user.organization_id,
        user_id=current_user.id,
        action="LOGOUT",
        resource="USER",
        resource_id=current_user.id,
        request=request,
    )
    await db.commit()

    return MessageResponse(message="Logged out successfully. Please discard your tokens.")


@router.get("/me", response_model=dict)
async def get_current_user_info(current_user: User = Depends(get_current_active_user)):
    """
    Get current authenticated user information.

    Returns:
        User information including the roles and permissions held in the
        active organization
    """
    roles = [
        {"id": str(user_role.role.id), "name": user_role.role.name, "slug": user_role.role.slug}
        for user_role in current_user.roles
        if user_role.role.organization_id in (None, current_user.organization_id)
    ]
    permissions = {permission.name for permission in get_user_permissions(current_user)}

    return {
        "id": str(current_user.id),
        "email": current_user.email,
        "full_name": current_user.full_name,
        "organization_id": str(current_user.organization_id),
        "organization_name": current_user.organization.name,
        "is_active": current_user.is_active,
        "is_verified": current_user.is_verified,
        "last_login_at": current_user.last_login_at.isoformat() if current_user.last_login_at else None,
        "roles": roles,
        "permissions": sorted(permissions),
    }
