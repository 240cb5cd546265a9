"""
Shared helpers for tenant-scoped list and detail routes.
"""

import math
from typing import Any, List, Optional, Tuple, Type
from uuid import UUID

from fastapi import HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession


class Pagination(BaseModel):
    """Pagination block returned with every list response."""

    total: int
    page: int
    limit: int
    pages: int


class PageParams(BaseModel):
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> PageParams:
    """Query parameter dependency for page/limit."""
    return PageParams(page=page, limit=limit)


def tenant_query(model, organization_id: UUID) -> Select:
    """Select live rows of a tenant-scoped model."""
    stmt = select(model).where(model.organization_id == organization_id)
    if hasattr(model, "deleted_at"):
        stmt = stmt.where(model.deleted_at.is_(None))
    return stmt


def apply_search(stmt: Select, term: Optional[str], *columns) -> Select:
    """Case-insensitive substring match on any of the given columns."""
    if not term:
        return stmt
    pattern = f"%{term}%"
    return stmt.where(or_(*(column.ilike(pattern) for column in columns)))


def apply_status(stmt: Select, column, value: Optional[str]) -> Select:
    """Filter on a status column; "all" disables the filter."""
    if not value or value == "all":
        return stmt
    return stmt.where(column == value)


async def paginate(db: AsyncSession, stmt: Select, params: PageParams) -> Tuple[List[Any], Pagination]:
    """Run a select for one page and count the full result."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar_one()

    result = await db.execute(stmt.offset(params.offset).limit(params.limit))
    items = list(result.scalars().unique().all())

    pagination = Pagination(
        total=total,
        page=params.page,
        limit=params.limit,
        pages=math.ceil(total / params.limit) if total else 0,
    )
    return items, pagination


async def get_tenant_record(
    db: AsyncSession,
    model: Type,
    record_id: UUID,
    organization_id: UUID,
    name: Optional[str] = None,
    options: Tuple = (),
):
    """
    Fetch one live record of the tenant.

    Records of other tenants are reported as missing.

    Raises:
        HTTPException: 404 if not found
    """
    stmt = tenant_query(model, organization_id).where(model.id == record_id)
    if options:
        stmt = stmt.options(*options)
    result = await db.execute(stmt)
    record = result.scalar_one_or_none()

    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{name or model.__name__} not found",
        )
    return record
