"""
HR API routes: departments, employees, leave requests and performance reviews.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.api.pagination import (
    PageParams,
    Pagination,
    apply_search,
    apply_status,
    get_tenant_record,
    page_params,
    paginate,
    tenant_query,
)
from bizsuite.database import get_db
from bizsuite.middleware.auth import get_current_active_user, has_permission, require_permissions
from bizsuite.models import Department, Employee, Leave, PerformanceReview, User
from bizsuite.models.base import utc_now
from bizsuite.services.audit import commit_with_audit

router = APIRouter(prefix="/api/v1/hr", tags=["hr"])

LEAVE_TYPES = r"^(ANNUAL|SICK|PERSONAL|MATERNITY|PATERNITY|UNPAID|OTHER)$"
LEAVE_STATUSES = r"^(PENDING|APPROVED|REJECTED|CANCELLED)$"


# Pydantic schemas
class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    cost_center: Optional[str] = Field(None, max_length=50)
    manager_id: Optional[UUID] = None


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    cost_center: Optional[str] = Field(None, max_length=50)
    manager_id: Optional[UUID] = None


class DepartmentResponse(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    description: Optional[str]
    cost_center: Optional[str]
    manager_id: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DepartmentList(BaseModel):
    departments: List[DepartmentResponse]
    pagination: Pagination


class EmployeeCreate(BaseModel):
    employee_number: str = Field(..., min_length=1, max_length=50)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    position: Optional[str] = Field(None, max_length=100)
    employment_type: str = Field("FULL_TIME", pattern=r"^(FULL_TIME|PART_TIME|CONTRACT|INTERN)$")
    status: str = Field("ACTIVE", pattern=r"^(ACTIVE|ON_LEAVE|TERMINATED)$")
    hire_date: Optional[date] = None
    salary: Optional[float] = Field(None, ge=0)
    annual_leave_days: int = Field(30, ge=0, le=365)
    department_id: Optional[UUID] = None
    user_id: Optional[UUID] = None


class EmployeeUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    position: Optional[str] = Field(None, max_length=100)
    employment_type: Optional[str] = Field(None, pattern=r"^(FULL_TIME|PART_TIME|CONTRACT|INTERN)$")
    status: Optional[str] = Field(None, pattern=r"^(ACTIVE|ON_LEAVE|TERMINATED)$")
    hire_date: Optional[date] = None
    salary: Optional[float] = Field(None, ge=0)
    annual_leave_days: Optional[int] = Field(None, ge=0, le=365)
    department_id: Optional[UUID] = None
    user_id: Optional[UUID] = None


class EmployeeResponse(BaseModel):
    id: UUID
    organization_id: UUID
    employee_number: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: Optional[str]
    position: Optional[str]
    employment_type: str
    status: str
    hire_date: Optional[date]
    salary: Optional[float]
    annual_leave_days: int
    department_id: Optional[UUID]
    user_id: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EmployeeList(BaseModel):
    employees: List[EmployeeResponse]
    pagination: Pagination


class LeaveCreate(BaseModel):
    employee_id: UUID
    type: str = Field(..., pattern=LEAVE_TYPES)
    start_date: date
    end_date: date
    reason: Optional[str] = None
    notes: Optional[str] = None
    emergency_contact: Optional[str] = Field(None, max_length=255)
    handover_notes: Optional[str] = None


class LeaveUpdate(BaseModel):
    type: Optional[str] = Field(None, pattern=LEAVE_TYPES)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    emergency_contact: Optional[str] = Field(None, max_length=255)
    handover_notes: Optional[str] = None
    status: Optional[str] = Field(None, pattern=LEAVE_STATUSES)
    approval_notes: Optional[str] = None


class LeaveResponse(BaseModel):
    id: UUID
    organization_id: UUID
    employee_id: UUID
    type: str
    start_date: date
    end_date: date
    days: int
    reason: Optional[str]
    notes: Optional[str]
    emergency_contact: Optional[str]
    handover_notes: Optional[str]
    status: str
    approver_id: Optional[UUID]
    approval_date: Optional[datetime]
    approval_notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LeaveList(BaseModel):
    leave_requests: List[LeaveResponse]
    pagination: Pagination


class ReviewCreate(BaseModel):
    employee_id: UUID
    period: str = Field(..., min_length=1, max_length=20)
    rating: Optional[float] = Field(None, ge=1, le=5)
    goals: Optional[List[str]] = None
    strengths: Optional[str] = None
    improvements: Optional[str] = None
    feedback: Optional[str] = None
    status: str = Field("DRAFT", pattern=r"^(DRAFT|SUBMITTED|COMPLETED)$")


class ReviewUpdate(BaseModel):
    period: Optional[str] = Field(None, min_length=1, max_length=20)
    rating: Optional[float] = Field(None, ge=1, le=5)
    goals: Optional[List[str]] = None
    strengths: Optional[str] = None
    improvements: Optional[str] = None
    feedback: Optional[str] = None
    status: Optional[str] = Field(None, pattern=r"^(DRAFT|SUBMITTED|COMPLETED)$")


class ReviewResponse(BaseModel):
    id: UUID
    organization_id: UUID
    employee_id: UUID
    reviewer_id: Optional[UUID]
    period: str
    rating: Optional[float]
    goals: Optional[List[str]]
    strengths: Optional[str]
    improvements: Optional[str]
    feedback: Optional[str]
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReviewList(BaseModel):
    reviews: List[ReviewResponse]
    pagination: Pagination


def count_working_days(start: date, end: date) -> int:
    """Weekdays between start and end, both inclusive."""
    days = 0
    current = start
    while current <= end:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return days


def period_bounds(period: str, today: Optional[date] = None) -> Tuple[date, date]:
    """
    Resolve a named period to its first and last day.

    Raises:
        ValueError: Unknown period name
    """
    today = today or utc_now().date()

    if period == "current_month":
        start = today.replace(day=1)
    elif period == "next_month":
        year, month = (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
        start = date(year, month, 1)
    elif period == "current_quarter":
        start = date(today.year, (today.month - 1) // 3 * 3 + 1, 1)
        last_month = start.month + 2
        return start, date(today.year, last_month, calendar.monthrange(today.year, last_month)[1])
    elif period == "current_year":
        return date(today.year, 1, 1), date(today.year, 12, 31)
    else:
        raise ValueError(f"Unknown period: {period}")

    return start, start.replace(day=calendar.monthrange(start.year, start.month)[1])


def _validate_leave_dates(start: date, end: date) -> int:
    if start >= end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End date must be after start date",
        )
    return count_working_days(start, end)


# Departments

@router.get("/departments", response_model=DepartmentList)
async def list_departments(
    search: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stmt = tenant_query(Department, current_user.organization_id)
    stmt = apply_search(stmt, search, Department.name, Department.description, Department.cost_center)

    departments, pagination = await paginate(db, stmt.order_by(Department.name), params)
    return {"departments": departments, "pagination": pagination}


@router.post("/departments", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
async def create_department(
    data: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("hr:create")),
):
    if data.manager_id:
        await get_tenant_record(db, Employee, data.manager_id, current_user.organization_id, name="Manager")

    department = Department(organization_id=current_user.organization_id, **data.model_dump())
    db.add(department)
    return await commit_with_audit(
        db, department, current_user, "DEPARTMENT_CREATED", "DEPARTMENT", {"name": department.name}
    )


@router.get("/departments/{department_id}", response_model=DepartmentResponse)
async def get_department(
    department_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Department, department_id, current_user.organization_id)


@router.put("/departments/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: UUID,
    data: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("hr:update")),
):
    department = await get_tenant_record(db, Department, department_id, current_user.organization_id)

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("manager_id"):
        await get_tenant_record(db, Employee, update_data["manager_id"], current_user.organization_id, name="Manager")

    for field, value in update_data.items():
        setattr(department, field, value)

    return await commit_with_audit(
        db, department, current_user, "DEPARTMENT_UPDATED", "DEPARTMENT", {"fields": sorted(update_data)}
    )


@router.delete("/departments/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_department(
    department_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("hr:delete")),
):
    department = await get_tenant_record(db, Department, department_id, current_user.organization_id)
    department.soft_delete()
    await commit_with_audit(db, department, current_user, "DEPARTMENT_DELETED", "DEPARTMENT", refresh=False)


# Employees

@router.get("/employees", response_model=EmployeeList)
async def list_employees(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    department_id: Optional[UUID] = None,
    employment_type: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    List employees.

    Args:
        search: Substring match on name, email, employee number or position
        status_filter: ACTIVE, ON_LEAVE, TERMINATED or "all"
        department_id: Employees of one department
        employment_type: FULL_TIME, PART_TIME, CONTRACT or INTERN
    """
    stmt = tenant_query(Employee, current_user.organization_id)
    stmt = apply_search(
        stmt,
        search,
        Employee.first_name,
        Employee.last_name,
        Employee.email,
        Employee.employee_number,
        Employee.position,
    )
    stmt = apply_status(stmt, Employee.status, status_filter)
    stmt = apply_status(stmt, Employee.employment_type, employment_type)
    if department_id:
        stmt = stmt.where(Employee.department_id == department_id)

    employees, pagination = await paginate(db, stmt.order_by(Employee.last_name, Employee.first_name), params)
    return {"employees": employees, "pagination": pagination}


@router.post("/employees", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED)
async def create_employee(
    data: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("hr:create")),
):
    """
    Create an employee.

    Raises:
        HTTPException: 400 if the employee number is already used in the organization
        HTTPException: 404 if the department or linked user is not in the organization
    """
    if data.department_id:
        await get_tenant_record(db, Department, data.department_id, current_user.organization_id)
    if data.user_id:
        await get_tenant_record(db, User, data.user_id, current_user.organization_id)

    stmt = select(Employee).where(
        Employee.organization_id == current_user.organization_id,
        Employee.employee_number == data.employee_number,
    )
    result = await db.execute(stmt)
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Employee number {data.employee_number} already exists",
        )

    employee = Employee(organization_id=current_user.organization_id, **data.model_dump())
    db.add(employee)
    return await commit_with_audit(
        db, employee, current_user, "EMPLOYEE_CREATED", "EMPLOYEE", {"employee_number": employee.employee_number}
    )


@router.get("/employees/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    employee_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Employee, employee_id, current_user.organization_id)


@router.put("/employees/{employee_id}", response_model=EmployeeResponse)
async def update_employee(
    employee_id: UUID,
    data: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("hr:update")),
):
    employee = await get_tenant_record(db, Employee, employee_id, current_user.organization_id)

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("department_id"):
        await get_tenant_record(db, Department, update_data["department_id"], current_user.organization_id)
    if update_data.get("user_id"):
        await get_tenant_record(db, User, update_data["user_id"], current_user.organization_id)

    for field, value in update_data.items():
        setattr(employee, field, value)

    return await commit_with_audit(
        db, employee, current_user, "EMPLOYEE_UPDATED", "EMPLOYEE", {"fields": sorted(update_data)}
    )


@router.delete("/employees/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_employee(
    employee_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("hr:delete")),
):
    employee = await get_tenant_record(db, Employee, employee_id, current_user.organization_id)
    employee.soft_delete()
    await commit_with_audit(db, employee, current_user, "EMPLOYEE_DELETED", "EMPLOYEE", refresh=False)


# Leave requests

@router.get("/leave", response_model=LeaveList)
async def list_leave_requests(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    type: Optional[str] = None,
    employee_id: Optional[UUID] = None,
    department_id: Optional[UUID] = None,
    period: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    List leave requests.

    Args:
        search: Substring match on employee name or number, reason or notes
        status_filter: PENDING, APPROVED, REJECTED, CANCELLED or "all"
        type: Leave type or "all"
        employee_id: Requests of one employee
        department_id: Requests of employees in one department
        period: current_month, next_month, current_quarter, current_year or "all";
            matches requests overlapping the period

    Raises:
        HTTPException: 400 for an unknown period
    """
    stmt = tenant_query(Leave, current_user.organization_id)

    if search or department_id:
        stmt = stmt.join(Employee, Employee.id == Leave.employee_id)
        stmt = apply_search(
            stmt,
            search,
            Employee.first_name,
            Employee.last_name,
            Employee.employee_number,
            Leave.reason,
            Leave.notes,
        )
        if department_id:
            stmt = stmt.where(Employee.department_id == department_id)

    stmt = apply_status(stmt, Leave.status, status_filter)
    stmt = apply_status(stmt, Leave.type, type)
    if employee_id:
        stmt = stmt.where(Leave.employee_id == employee_id)

    if period and period != "all":
        try:
            period_start, period_end = period_bounds(period)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        stmt = stmt.where(
            or_(
                Leave.start_date.between(period_start, period_end),
                Leave.end_date.between(period_start, period_end),
                and_(Leave.start_date <= period_start, Leave.end_date >= period_end),
            )
        )

    leave_requests, pagination = await paginate(db, stmt.order_by(Leave.created_at.desc()), params)
    return {"leave_requests": leave_requests, "pagination": pagination}


@router.post("/leave", response_model=LeaveResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_request(
    data: LeaveCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("hr:create")),
):
    """
    Request leave for an employee.

    The request starts PENDING; days is the number of weekdays in the range.

    Raises:
        HTTPException: 400 if the end date is not after the start date
        HTTPException: 404 if the employee is not in the organization
    """
    days = _validate_leave_dates(data.start_date, data.end_date)
    await get_tenant_record(db, Employee, data.employee_id, current_user.organization_id)

    leave = Leave(
        organization_id=current_user.organization_id,
        days=days,
        status="PENDING",
        **data.model_dump(),
    )
    db.add(leave)
    return await commit_with_audit(
        db,
        leave,
        current_user,
        "LEAVE_REQUEST_CREATED",
        "LEAVE",
        {"type": leave.type, "days": days},
    )


@router.get("/leave/{leave_id}", response_model=LeaveResponse)
async def get_leave_request(
    leave_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Leave, leave_id, current_user.organization_id, name="Leave request")


@router.put("/leave/{leave_id}", response_model=LeaveResponse)
async def update_leave_request(
    leave_id: UUID,
    data: LeaveUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("hr:update")),
):
    """
    Update a leave request or decide on it.

    Moving to APPROVED or REJECTED requires hr:approve and records the
    approver, the decision time and the approval notes.

    Raises:
        HTTPException: 400 on invalid dates
        HTTPException: 403 if deciding without hr:approve
        HTTPException: 404 if not found
    """
    leave = await get_tenant_record(db, Leave, leave_id, current_user.organization_id, name="Leave request")

    update_data = data.model_dump(exclude_unset=True)
    new_status = update_data.get("status")

    if new_status in ("APPROVED", "REJECTED") and new_status != leave.status:
        if not has_permission(current_user, "hr:approve"):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permission denied: hr:approve required",
            )
        leave.approver_id = current_user.id
        leave.approval_date = utc_now()

    if "start_date" in update_data or "end_date" in update_data:
        start = update_data.get("start_date", leave.start_date)
        end = update_data.get("end_date", leave.end_date)
        leave.days = _validate_leave_dates(start, end)

    for field, value in update_data.items():
        setattr(leave, field, value)

    return await commit_with_audit(
        db,
        leave,
        current_user,
        "LEAVE_REQUEST_UPDATED",
        "LEAVE",
        {"fields": sorted(update_data), "status": leave.status},
    )


@router.delete("/leave/{leave_id}", response_model=LeaveResponse)
async def cancel_leave_request(
    leave_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("hr:update")),
):
    """
    Cancel a pending leave request.

    The row is kept with status CANCELLED.

    Raises:
        HTTPException: 400 if the request is no longer pending
        HTTPException: 404 if not found
    """
    leave = await get_tenant_record(db, Leave, leave_id, current_user.organization_id, name="Leave request")

    if leave.status != "PENDING":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only pending leave requests can be cancelled",
        )

    leave.status = "CANCELLED"
    return await commit_with_audit(db, leave, current_user, "LEAVE_REQUEST_CANCELLED", "LEAVE")


# Performance reviews

@router.get("/performance-reviews", response_model=ReviewList)
async def list_performance_reviews(
    employee_id: Optional[UUID] = None,
    period: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stmt = tenant_query(PerformanceReview, current_user.organization_id)
    stmt = apply_status(stmt, PerformanceReview.status, status_filter)
    if employee_id:
        stmt = stmt.where(PerformanceReview.employee_id == employee_id)
    if period:
        stmt = stmt.where(PerformanceReview.period == period)

    reviews, pagination = await paginate(db, stmt.order_by(PerformanceReview.created_at.desc()), params)
    return {"reviews": reviews, "pagination": pagination}


@router.post("/performance-reviews", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_performance_review(
    data: ReviewCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("hr:create")),
):
    await get_tenant_record(db, Employee, data.employee_id, current_user.organization_id)

    review = PerformanceReview(
        organization_id=current_user.organization_id,
        reviewer_id=current_user.id,
        **data.model_dump(),
    )
    db.add(review)
    return await commit_with_audit(
        db, review, current_user, "PERFORMANCE_REVIEW_CREATED", "PERFORMANCE_REVIEW", {"period": review.period}
    )


@router.get("/performance-reviews/{review_id}", response_model=ReviewResponse)
async def get_performance_review(
    review_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(
        db, PerformanceReview, review_id, current_user.organization_id, name="Performance review"
    )


@router.put("/performance-reviews/{review_id}", response_model=ReviewResponse)
async def update_performance_review(
    review_id: UUID,
    data: ReviewUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("hr:update")),
):
    review = await get_tenant_record(
        db, PerformanceReview, review_id, current_user.organization_id, name="Performance review"
    )

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(review, field, value)

    return await commit_with_audit(
        db, review, current_user, "PERFORMANCE_REVIEW_UPDATED", "PERFORMANCE_REVIEW", {"fields": sorted(update_data)}
    )


@router.delete("/performance-reviews/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_performance_review(
    review_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("hr:delete")),
):
    review = await get_tenant_record(
        db, PerformanceReview, review_id, current_user.organization_id, name="Performance review"
    )
    review.soft_delete()
    await commit_with_audit(
        db, review, current_user, "PERFORMANCE_REVIEW_DELETED", "PERFORMANCE_REVIEW", refresh=False
    )
