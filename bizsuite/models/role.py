"""
RBAC models for access control.

Roles, permissions, and user-role assignments.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

from bizsuite.models.base import Base, utc_now


class Role(Base):
    """
    Role model for RBAC.

    Roles are scoped to an organization. Registration creates an "Admin"
    role holding the "*:*" permission.
    """

    __tablename__ = "roles"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    # Role details
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_system_role: Mapped[bool] = mapped_column(default=False)

    organization_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    # Relationships
    permissions: Mapped[list["Permission"]] = relationship(
        "Permission",
        back_populates="role",
        cascade="all, delete-orphan"
    )
    user_roles: Mapped[list["UserRole"]] = relationship(
        "UserRole",
        back_populates="role",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "slug", name="uq_org_role_slug"),
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name}, system={self.is_system_role})>"


class Permission(Base):
    """
    Permission model for fine-grained access control.

    A permission grants one action on one resource, e.g. "crm:delete".
    Either part may be "*".
    """

    __tablename__ = "permissions"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    role_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    resource: Mapped[str] = mapped_column(String(100), nullable=False)  # crm, hr, finance, projects, ...
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # read, create, update, delete, approve

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    role: Mapped["Role"] = relationship(
        "Role",
        back_populates="permissions"
    )

    __table_args__ = (
        UniqueConstraint("role_id", "resource", "action", name="uq_role_resource_action"),
    )

    def __repr__(self) -> str:
        return f"<Permission(role_id={self.role_id}, {self.action} {self.resource})>"

    @property
    def name(self) -> str:
        """Permission name in "resource:action" form."""
        return f"{self.resource}:{self.action}"

    def grants(self, required: str) -> bool:
        """Check whether this permission covers a required "resource:action" name."""
        resource, _, action = required.partition(":")
        return self.resource in ("*", resource) and self.action in ("*", action)


class UserRole(Base):
    """
    User-Role assignment (many-to-many).

    Links users to their roles within an organization.
    """

    __tablename__ = "user_roles"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    role_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    assigned_by: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        nullable=True
    )  # User ID who assigned this role

    user: Mapped["User"] = relationship(
        "User",
        back_populates="roles"
    )
    role: Mapped["Role"] = relationship(
        "Role",
        back_populates="user_roles"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )

    def __repr__(self) -> str:
        return f"<UserRole(user_id={self.user_id}, role_id={self.role_id})>"
