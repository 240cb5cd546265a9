"""
GraphQL-style query endpoint with complexity limiting and caching.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.database import get_db
from bizsuite.middleware.auth import get_current_active_user
from bizsuite.models import User
from bizsuite.services.graphql import QueryComplexityError, QueryVariableError, get_graphql_service

router = APIRouter(prefix="/api/v1/graphql", tags=["graphql"])


class GraphQLRequest(BaseModel):
    query: str = Field(..., min_length=1)
    variables: Optional[Dict[str, Any]] = None
    operation_name: Optional[str] = Field(None, alias="operationName")

    class Config:
        populate_by_name = True


@router.post("")
async def execute_graphql(
    data: GraphQLRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Execute a query against the organization's data.

    Raises:
        HTTPException: 400 if the query complexity exceeds the limit or a variable is malformed
    """
    try:
        result = await get_graphql_service().execute_query(
            db,
            data.query,
            current_user.organization_id,
            variables=data.variables,
            operation_name=data.operation_name,
        )
    except (QueryComplexityError, QueryVariableError) as e:
        # Keep the log row of the rejected query
        await db.commit()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await db.commit()
    return result


@router.get("/analytics")
async def graphql_analytics(
    days: int = Query(7, ge=1, le=90),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_graphql_service().get_analytics(db, current_user.organization_id, days)
