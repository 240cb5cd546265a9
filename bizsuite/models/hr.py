"""
HR models: departments, employees, leave requests and performance reviews.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import String, Text, Float, Integer, Date, DateTime, ForeignKey, UniqueConstraint, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

from bizsuite.models.base import Base, SoftDeleteMixin, TenantScopedMixin


class Department(TenantScopedMixin, SoftDeleteMixin, Base):
    """Organizational unit."""

    __tablename__ = "departments"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cost_center: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    manager_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        nullable=True
    )  # Employee ID of the department head

    def __repr__(self) -> str:
        return f"<Department(id={self.id}, name={self.name})>"


class Employee(TenantScopedMixin, SoftDeleteMixin, Base):
    """Employee record, optionally linked to a user account."""

    __tablename__ = "employees"

    employee_number: Mapped[str] = mapped_column(String(50), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    position: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    employment_type: Mapped[str] = mapped_column(String(20), default="FULL_TIME")  # FULL_TIME, PART_TIME, CONTRACT, INTERN
    status: Mapped[str] = mapped_column(String(20), default="ACTIVE", index=True)  # ACTIVE, ON_LEAVE, TERMINATED
    hire_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    salary: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    annual_leave_days: Mapped[int] = mapped_column(Integer, default=30)

    department_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    user_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "employee_number", name="uq_org_employee_number"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Employee(id={self.id}, number={self.employee_number})>"


class Leave(TenantScopedMixin, Base):
    """
    Leave request.

    Status flow: PENDING -> APPROVED | REJECTED, or PENDING -> CANCELLED.
    Cancelled requests stay in the table.
    """

    __tablename__ = "leave_requests"

    employee_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # ANNUAL, SICK, PERSONAL, MATERNITY, PATERNITY, UNPAID, OTHER
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    days: Mapped[int] = mapped_column(Integer, nullable=False)  # working days
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    emergency_contact: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    handover_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)

    approver_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    approval_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    approval_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Leave(id={self.id}, type={self.type}, status={self.status})>"


class PerformanceReview(TenantScopedMixin, SoftDeleteMixin, Base):
    """Periodic employee performance review."""

    __tablename__ = "performance_reviews"

    employee_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    reviewer_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    period: Mapped[str] = mapped_column(String(20), nullable=False)  # e.g. 2024-Q1
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # 1.0 - 5.0
    goals: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    strengths: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    improvements: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="DRAFT")  # DRAFT, SUBMITTED, COMPLETED

    def __repr__(self) -> str:
        return f"<PerformanceReview(id={self.id}, period={self.period})>"
