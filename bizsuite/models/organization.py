"""
Organization model for multi-tenant SaaS.

Each organization represents a separate tenant/customer.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Boolean, Integer, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

from bizsuite.models.base import Base, utc_now


class Organization(Base):
    """
    Organization (Tenant) model.

    Represents a company/customer in the multi-tenant SaaS.
    All data is isolated by organization_id.
    """

    __tablename__ = "organizations"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    # Organization details
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    domain: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Subscription/billing
    plan: Mapped[str] = mapped_column(String(50), default="trial")  # trial, starter, professional, enterprise
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    max_users: Mapped[int] = mapped_column(Integer, default=10)

    # Defaults applied to new records (currency, locale, ...)
    settings: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Contact information
    contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    users: Mapped[list["User"]] = relationship(
        "User",
        back_populates="organization",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name}, plan={self.plan})>"

    @property
    def is_deleted(self) -> bool:
        """Check if organization is soft-deleted."""
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        """Soft delete the organization."""
        self.deleted_at = utc_now()
        self.is_active = False
