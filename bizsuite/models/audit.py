"""
Audit logging model for compliance.

Every mutating API operation writes one row (DEAL_CREATED, LEAVE_REQUEST_UPDATED, ...).
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, ForeignKey, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

from bizsuite.models.base import Base, utc_now


class AuditLog(Base):
    """
    Audit log for compliance and security tracking.

    Tracks:
    - Authentication events (login, failed login, tenant switch)
    - Data mutations (who changed which record)
    - Administrative actions
    """

    __tablename__ = "audit_logs"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    # Foreign keys
    organization_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Event details
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)  # deal_created, login_failed, ...
    action: Mapped[str] = mapped_column(String(100), nullable=False)  # DEAL_CREATED, LOGIN, ...
    resource: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)  # DEAL, INVOICE, LEAVE, ...
    resource_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Request context
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Result
    status: Mapped[str] = mapped_column(String(20), default="success")  # success, failure, denied
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    context_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False, index=True)

    user: Mapped[Optional["User"]] = relationship("User")

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action}, user_id={self.user_id})>"
