"""
Project management API routes: projects, tasks with comments, timesheets.

Project progress follows the share of its tasks that are DONE, and hours
booked on a timesheet are added to the task's actual hours.
"""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import func, select
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
from bizsuite.middleware.auth import get_current_active_user, require_permissions
from bizsuite.models import Customer, Project, Task, TaskComment, Timesheet, User
from bizsuite.models.base import utc_now
from bizsuite.services.audit import commit_with_audit

router = APIRouter(prefix="/api/v1", tags=["projects"])

PROJECT_STATUSES = r"^(PLANNING|ACTIVE|ON_HOLD|COMPLETED|CANCELLED)$"
TASK_STATUSES = r"^(TODO|IN_PROGRESS|REVIEW|DONE|BLOCKED)$"
PRIORITIES = r"^(LOW|MEDIUM|HIGH|URGENT)$"


# Pydantic schemas
class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: str = Field("PLANNING", pattern=PROJECT_STATUSES)
    priority: str = Field("MEDIUM", pattern=PRIORITIES)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Optional[float] = Field(None, ge=0)
    customer_id: Optional[UUID] = None
    manager_id: Optional[UUID] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[str] = Field(None, pattern=PROJECT_STATUSES)
    priority: Optional[str] = Field(None, pattern=PRIORITIES)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Optional[float] = Field(None, ge=0)
    progress: Optional[int] = Field(None, ge=0, le=100)
    customer_id: Optional[UUID] = None
    manager_id: Optional[UUID] = None


class ProjectResponse(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    description: Optional[str]
    status: str
    priority: str
    start_date: Optional[date]
    end_date: Optional[date]
    budget: Optional[float]
    progress: int
    customer_id: Optional[UUID]
    manager_id: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProjectList(BaseModel):
    projects: List[ProjectResponse]
    pagination: Pagination


class TaskCreate(BaseModel):
    project_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: str = Field("TODO", pattern=TASK_STATUSES)
    priority: str = Field("MEDIUM", pattern=PRIORITIES)
    parent_task_id: Optional[UUID] = None
    assignee_id: Optional[UUID] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = Field(None, ge=0)


class TaskUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[str] = Field(None, pattern=TASK_STATUSES)
    priority: Optional[str] = Field(None, pattern=PRIORITIES)
    assignee_id: Optional[UUID] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = Field(None, ge=0)
    actual_hours: Optional[float] = Field(None, ge=0)


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)


class CommentResponse(BaseModel):
    id: UUID
    task_id: UUID
    user_id: Optional[UUID]
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class TaskResponse(BaseModel):
    id: UUID
    organization_id: UUID
    project_id: UUID
    parent_task_id: Optional[UUID]
    name: str
    description: Optional[str]
    status: str
    priority: str
    assignee_id: Optional[UUID]
    start_date: Optional[date]
    due_date: Optional[date]
    estimated_hours: Optional[float]
    actual_hours: float
    completed_at: Optional[datetime]
    comments: List[CommentResponse]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TaskList(BaseModel):
    tasks: List[TaskResponse]
    pagination: Pagination


class TimesheetCreate(BaseModel):
    work_date: date
    hours: float = Field(..., gt=0, le=24)
    project_id: Optional[UUID] = None
    task_id: Optional[UUID] = None
    description: Optional[str] = None
    billable: bool = True


class TimesheetUpdate(BaseModel):
    work_date: Optional[date] = None
    hours: Optional[float] = Field(None, gt=0, le=24)
    description: Optional[str] = None
    billable: Optional[bool] = None
    status: Optional[str] = Field(None, pattern=r"^(DRAFT|SUBMITTED|APPROVED|REJECTED)$")


class TimesheetResponse(BaseModel):
    id: UUID
    organization_id: UUID
    user_id: UUID
    project_id: Optional[UUID]
    task_id: Optional[UUID]
    work_date: date
    hours: float
    description: Optional[str]
    billable: bool
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TimesheetList(BaseModel):
    timesheets: List[TimesheetResponse]
    pagination: Pagination


async def refresh_project_progress(db: AsyncSession, project_id: UUID) -> None:
    """Set project progress to the percentage of its live tasks that are DONE."""
    stmt = select(
        func.count(Task.id),
        func.count(Task.id).filter(Task.status == "DONE"),
    ).where(Task.project_id == project_id, Task.deleted_at.is_(None))
    total, done = (await db.execute(stmt)).one()

    project = await db.get(Project, project_id)
    if project is not None:
        project.progress = round(done / total * 100) if total else 0


# Projects

@router.get("/projects", response_model=ProjectList)
async def list_projects(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = None,
    manager_id: Optional[UUID] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stmt = tenant_query(Project, current_user.organization_id)
    stmt = apply_search(stmt, search, Project.name, Project.description)
    stmt = apply_status(stmt, Project.status, status_filter)
    stmt = apply_status(stmt, Project.priority, priority)
    if manager_id:
        stmt = stmt.where(Project.manager_id == manager_id)

    projects, pagination = await paginate(db, stmt.order_by(Project.created_at.desc()), params)
    return {"projects": projects, "pagination": pagination}


@router.post("/projects", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("projects:create")),
):
    if data.start_date and data.end_date and data.end_date < data.start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End date must not be before the start date",
        )
    if data.customer_id:
        await get_tenant_record(db, Customer, data.customer_id, current_user.organization_id)
    if data.manager_id:
        await get_tenant_record(db, User, data.manager_id, current_user.organization_id)

    project = Project(
        organization_id=current_user.organization_id,
        progress=0,
        **data.model_dump(exclude={"manager_id"}),
        manager_id=data.manager_id or current_user.id,
    )
    db.add(project)
    return await commit_with_audit(db, project, current_user, "PROJECT_CREATED", "PROJECT", {"name": project.name})


@router.get("/projects/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Project, project_id, current_user.organization_id)


@router.put("/projects/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: UUID,
    data: ProjectUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("projects:update")),
):
    project = await get_tenant_record(db, Project, project_id, current_user.organization_id)

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("customer_id"):
        await get_tenant_record(db, Customer, update_data["customer_id"], current_user.organization_id)
    if update_data.get("manager_id"):
        await get_tenant_record(db, User, update_data["manager_id"], current_user.organization_id)
    for field, value in update_data.items():
        setattr(project, field, value)

    if project.start_date and project.end_date and project.end_date < project.start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End date must not be before the start date",
        )

    return await commit_with_audit(
        db, project, current_user, "PROJECT_UPDATED", "PROJECT", {"fields": sorted(update_data)}
    )


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("projects:delete")),
):
    project = await get_tenant_record(db, Project, project_id, current_user.organization_id)
    project.soft_delete()
    await commit_with_audit(db, project, current_user, "PROJECT_DELETED", "PROJECT", refresh=False)


# Tasks

@router.get("/tasks", response_model=TaskList)
async def list_tasks(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = None,
    project_id: Optional[UUID] = None,
    assignee_id: Optional[UUID] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    List tasks with their comments.

    Args:
        search: Substring match on name or description
        status_filter: TODO, IN_PROGRESS, REVIEW, DONE, BLOCKED or "all"
        priority: LOW, MEDIUM, HIGH, URGENT or "all"
        project_id: Tasks of one project
        assignee_id: Tasks assigned to one user
    """
    stmt = tenant_query(Task, current_user.organization_id)
    stmt = apply_search(stmt, search, Task.name, Task.description)
    stmt = apply_status(stmt, Task.status, status_filter)
    stmt = apply_status(stmt, Task.priority, priority)
    if project_id:
        stmt = stmt.where(Task.project_id == project_id)
    if assignee_id:
        stmt = stmt.where(Task.assignee_id == assignee_id)

    tasks, pagination = await paginate(db, stmt.order_by(Task.due_date, Task.created_at.desc()), params)
    return {"tasks": tasks, "pagination": pagination}


@router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    data: TaskCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("projects:create")),
):
    """
    Create a task in a project of the organization.

    Raises:
        HTTPException: 404 if the project, parent task or assignee is not in the organization
    """
    await get_tenant_record(db, Project, data.project_id, current_user.organization_id)
    if data.parent_task_id:
        await get_tenant_record(db, Task, data.parent_task_id, current_user.organization_id)
    if data.assignee_id:
        await get_tenant_record(db, User, data.assignee_id, current_user.organization_id)

    task = Task(organization_id=current_user.organization_id, actual_hours=0.0, **data.model_dump())
    if task.status == "DONE":
        task.completed_at = utc_now()
    db.add(task)
    await db.flush()
    await refresh_project_progress(db, task.project_id)

    return await commit_with_audit(
        db, task, current_user, "TASK_CREATED", "TASK", {"name": task.name, "project_id": str(task.project_id)}
    )


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Task, task_id, current_user.organization_id)


@router.put("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: UUID,
    data: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("projects:update")),
):
    task = await get_tenant_record(db, Task, task_id, current_user.organization_id)

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("assignee_id"):
        await get_tenant_record(db, User, update_data["assignee_id"], current_user.organization_id)
    previous_status = task.status
    for field, value in update_data.items():
        setattr(task, field, value)

    if task.status != previous_status:
        task.completed_at = utc_now() if task.status == "DONE" else None
        await db.flush()
        await refresh_project_progress(db, task.project_id)

    return await commit_with_audit(db, task, current_user, "TASK_UPDATED", "TASK", {"fields": sorted(update_data)})


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("projects:delete")),
):
    task = await get_tenant_record(db, Task, task_id, current_user.organization_id)
    task.soft_delete()
    await db.flush()
    await refresh_project_progress(db, task.project_id)
    await commit_with_audit(db, task, current_user, "TASK_DELETED", "TASK", refresh=False)


@router.get("/tasks/{task_id}/comments", response_model=List[CommentResponse])
async def list_task_comments(
    task_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    task = await get_tenant_record(db, Task, task_id, current_user.organization_id)
    return task.comments


@router.post("/tasks/{task_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_task_comment(
    task_id: UUID,
    data: CommentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("projects:create")),
):
    task = await get_tenant_record(db, Task, task_id, current_user.organization_id)

    comment = TaskComment(user_id=current_user.id, content=data.content)
    task.comments.append(comment)
    return await commit_with_audit(
        db, comment, current_user, "TASK_COMMENT_CREATED", "TASK_COMMENT", {"task_id": str(task.id)}
    )


# Timesheets

@router.get("/timesheets", response_model=TimesheetList)
async def list_timesheets(
    project_id: Optional[UUID] = None,
    user_id: Optional[UUID] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stmt = tenant_query(Timesheet, current_user.organization_id)
    stmt = apply_status(stmt, Timesheet.status, status_filter)
    if project_id:
        stmt = stmt.where(Timesheet.project_id == project_id)
    if user_id:
        stmt = stmt.where(Timesheet.user_id == user_id)
    if start_date:
        stmt = stmt.where(Timesheet.work_date >= start_date)
    if end_date:
        stmt = stmt.where(Timesheet.work_date <= end_date)

    timesheets, pagination = await paginate(db, stmt.order_by(Timesheet.work_date.desc()), params)
    return {"timesheets": timesheets, "pagination": pagination}


@router.post("/timesheets", response_model=TimesheetResponse, status_code=status.HTTP_201_CREATED)
async def create_timesheet(
    data: TimesheetCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("projects:create")),
):
    """
    Book hours for the current user.

    Hours booked on a task are added to its actual hours; a task implies
    its project.

    Raises:
        HTTPException: 404 if the project or task is not in the organization
    """
    project_id = data.project_id
    if data.task_id:
        task = await get_tenant_record(db, Task, data.task_id, current_user.organization_id)
        task.actual_hours = (task.actual_hours or 0.0) + data.hours
        project_id = project_id or task.project_id
    if project_id:
        await get_tenant_record(db, Project, project_id, current_user.organization_id)

    timesheet = Timesheet(
        organization_id=current_user.organization_id,
        user_id=current_user.id,
        status="DRAFT",
        **data.model_dump(exclude={"project_id"}),
        project_id=project_id,
    )
    db.add(timesheet)
    return await commit_with_audit(
        db, timesheet, current_user, "TIMESHEET_CREATED", "TIMESHEET", {"hours": timesheet.hours}
    )


@router.get("/timesheets/{timesheet_id}", response_model=TimesheetResponse)
async def get_timesheet(
    timesheet_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Timesheet, timesheet_id, current_user.organization_id)


@router.put("/timesheets/{timesheet_id}", response_model=TimesheetResponse)
async def update_timesheet(
    timesheet_id: UUID,
    data: TimesheetUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("projects:update")),
):
    timesheet = await get_tenant_record(db, Timesheet, timesheet_id, current_user.organization_id)

    update_data = data.model_dump(exclude_unset=True)
    if "hours" in update_data and timesheet.task_id:
        task = await db.get(Task, timesheet.task_id)
        if task is not None:
            task.actual_hours = max(0.0, (task.actual_hours or 0.0) - timesheet.hours + update_data["hours"])

    for field, value in update_data.items():
        setattr(timesheet, field, value)

    return await commit_with_audit(
        db, timesheet, current_user, "TIMESHEET_UPDATED", "TIMESHEET", {"fields": sorted(update_data)}
    )


@router.delete("/timesheets/{timesheet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_timesheet(
    timesheet_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("projects:delete")),
):
    """Timesheets are removed outright; their hours come off the task."""
    timesheet = await get_tenant_record(db, Timesheet, timesheet_id, current_user.organization_id)

    if timesheet.task_id:
        task = await db.get(Task, timesheet.task_id)
        if task is not None:
            task.actual_hours = max(0.0, (task.actual_hours or 0.0) - timesheet.hours)

    await db.delete(timesheet)
    await commit_with_audit(db, timesheet, current_user, "TIMESHEET_DELETED", "TIMESHEET", refresh=False)
