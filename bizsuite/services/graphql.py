"""
GraphQL-style query endpoint with complexity estimation.

Top-level fields are extracted with a regular expression, weighted into
a complexity score and resolved against tenant-scoped tables. Results are
cached in process memory and every execution is logged.
"""

import base64
import hashlib
import json
import logging
import re
import time
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.config.settings import get_settings
from bizsuite.models import GraphQLQueryLog, Invoice, Project, Task, User
from bizsuite.models.base import utc_now

logger = logging.getLogger(__name__)

FIELD_PATTERN = re.compile(r"\b(\w+)(?:\s*\(|\s*\{|\s*$)")
OPERATION_PATTERN = re.compile(r"^\s*(?:query|mutation|subscription)\s+(\w+)")
OPERATION_KEYWORDS = {"query", "mutation", "subscription"}

FIELD_COMPLEXITY = {
    "user": 1,
    "users": 5,
    "project": 2,
    "projects": 10,
    "task": 1,
    "tasks": 8,
    "invoice": 2,
    "invoices": 10,
    "analytics": 15,
    "reports": 20,
}

# Columns never exposed through the query endpoint
HIDDEN_COLUMNS = {"hashed_password"}

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


class QueryComplexityError(ValueError):
    """Raised when a query is more expensive than the configured limit."""


class QueryVariableError(ValueError):
    """Raised when a query variable has the wrong type."""


def extract_query_fields(query: str) -> List[str]:
    return [field for field in FIELD_PATTERN.findall(query) if field not in OPERATION_KEYWORDS]


def calculate_query_complexity(query: str) -> int:
    """Sum field weights, +2 for a selection set and +3 for arguments."""
    complexity = 0
    for field in extract_query_fields(query):
        complexity += FIELD_COMPLEXITY.get(field, 1)
        if f"{field} {{" in query:
            complexity += 2
        if f"{field}(" in query:
            complexity += 3
    return complexity


def generate_cache_key(query: str, variables: Optional[Dict[str, Any]] = None) -> str:
    """Short query hash recorded in the query log."""
    content = query + json.dumps(variables or {})
    return base64.b64encode(content.encode()).decode()[:32]


def result_cache_key(query: str, variables: Optional[Dict[str, Any]] = None) -> str:
    """Digest of the whole query and its variables, used to key cached results."""
    content = query + json.dumps(variables or {}, sort_keys=True, default=str)
    return hashlib.sha256(content.encode()).hexdigest()


def _int_variable(variables: Dict[str, Any], name: str, default: int) -> int:
    value = variables.get(name, default)
    if value is None:
        return default
    if isinstance(value, bool):
        raise QueryVariableError(f"Variable '{name}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise QueryVariableError(f"Variable '{name}' must be an integer")


def page_window(variables: Dict[str, Any]) -> Tuple[int, int]:
    """limit and offset from the variables, limit clamped to 1..MAX_LIMIT and offset to >= 0."""
    limit = min(max(_int_variable(variables, "limit", DEFAULT_LIMIT), 1), MAX_LIMIT)
    offset = max(_int_variable(variables, "offset", 0), 0)
    return limit, offset


def uuid_variable(variables: Dict[str, Any], name: str) -> Optional[UUID]:
    value = variables.get(name)
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        raise QueryVariableError(f"Variable '{name}' must be a UUID")


def row_to_dict(row) -> Dict[str, Any]:
    data = {}
    for column in row.__table__.columns:
        if column.key in HIDDEN_COLUMNS:
            continue
        value = getattr(row, column.key)
        if isinstance(value, (datetime, date)):
            value = value.isoformat()
        elif isinstance(value, UUID):
            value = str(value)
        data[column.key] = value
    return data


class GraphQLService:
    """Complexity-limited resolver for a small fixed set of fields."""

    def __init__(self):
        self._cache: Dict[Tuple[UUID, str], Tuple[float, Dict[str, Any]]] = {}

    def clear_cache(self) -> None:
        self._cache.clear()

    def _cached(self, organization_id: UUID, key: str) -> Optional[Dict[str, Any]]:
        entry = self._cache.get((organization_id, key))
        if entry is None:
            return None
        expires, result = entry
        if expires <= time.time():
            del self._cache[(organization_id, key)]
            return None
        return result

    async def execute_query(
        self,
        db: AsyncSession,
        query: str,
        organization_id: UUID,
        variables: Optional[Dict[str, Any]] = None,
        operation_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Run a query and log it.

        Raises:
            QueryComplexityError: If complexity exceeds the configured limit
            QueryVariableError: If limit, offset or an id variable is malformed
        """
        settings = get_settings()
        started = time.perf_counter()
        variables = variables or {}
        cache_key = generate_cache_key(query, variables)
        if operation_name is None:
            match = OPERATION_PATTERN.match(query)
            operation_name = match.group(1) if match else None

        complexity = calculate_query_complexity(query)
        if complexity > settings.graphql_complexity_limit:
            await self._log(db, organization_id, cache_key, operation_name, complexity, started,
                            error="Query complexity exceeds limit")
            raise QueryComplexityError("Query complexity exceeds limit")

        try:
            # Malformed paging or id variables are rejected before any resolver runs
            page_window(variables)
            uuid_variable(variables, "projectId")
        except QueryVariableError as e:
            await self._log(db, organization_id, cache_key, operation_name, complexity, started, error=str(e))
            raise

        result_key = result_cache_key(query, variables)
        cached = self._cached(organization_id, result_key)
        if cached is not None:
            await self._log(db, organization_id, cache_key, operation_name, complexity, started, cache_hit=True)
            return cached

        data = {}
        for field in extract_query_fields(query):
            data[field] = await self.resolve_field(db, field, variables, organization_id)
        result = {"data": data}

        self._cache[(organization_id, result_key)] = (time.time() + settings.graphql_cache_ttl_seconds, result)
        await self._log(db, organization_id, cache_key, operation_name, complexity, started)
        return result

    async def _log(
        self,
        db: AsyncSession,
        organization_id: UUID,
        query_hash: str,
        operation_name: Optional[str],
        complexity: int,
        started: float,
        cache_hit: bool = False,
        error: Optional[str] = None,
    ) -> None:
        db.add(
            GraphQLQueryLog(
                organization_id=organization_id,
                query_hash=query_hash,
                operation_name=operation_name,
                complexity=complexity,
                execution_time=(time.perf_counter() - started) * 1000,
                cache_hit=cache_hit,
                error=error,
            )
        )
        await db.flush()

    # Resolvers

    async def resolve_field(
        self, db: AsyncSession, field: str, variables: Dict[str, Any], organization_id: UUID
    ) -> Any:
        limit, offset = page_window(variables)

        if field == "users":
            stmt = select(User).where(User.organization_id == organization_id, User.deleted_at.is_(None))
            return await self._list(db, stmt.order_by(User.created_at), limit, offset)

        if field == "projects":
            stmt = select(Project).where(Project.organization_id == organization_id, Project.deleted_at.is_(None))
            if variables.get("status"):
                stmt = stmt.where(Project.status == variables["status"])
            return await self._list(db, stmt.order_by(Project.created_at), limit, offset)

        if field == "tasks":
            stmt = select(Task).where(Task.organization_id == organization_id, Task.deleted_at.is_(None))
            if variables.get("status"):
                stmt = stmt.where(Task.status == variables["status"])
            project_id = uuid_variable(variables, "projectId")
            if project_id:
                stmt = stmt.where(Task.project_id == project_id)
            return await self._list(db, stmt.order_by(Task.created_at), limit, offset)

        if field == "invoices":
            stmt = select(Invoice).where(Invoice.organization_id == organization_id, Invoice.deleted_at.is_(None))
            if variables.get("status"):
                stmt = stmt.where(Invoice.status == variables["status"])
            return await self._list(db, stmt.order_by(Invoice.created_at), limit, offset)

        single = {"user": User, "project": Project, "task": Task, "invoice": Invoice}
        if field in single and variables.get("id"):
            model = single[field]
            try:
                record_id = UUID(str(variables["id"]))
            except ValueError:
                return None
            result = await db.execute(
                select(model).where(
                    model.id == record_id,
                    model.organization_id == organization_id,
                    model.deleted_at.is_(None),
                )
            )
            record = result.scalar_one_or_none()
            return row_to_dict(record) if record else None

        if field == "analytics":
            return {
                "type": variables.get("type"),
                "data": {"date_range": variables.get("dateRange")},
                "generated_at": utc_now().isoformat(),
            }

        return None

    @staticmethod
    async def _list(db: AsyncSession, stmt, limit: int, offset: int) -> List[Dict[str, Any]]:
        result = await db.execute(stmt.offset(offset).limit(limit))
        return [row_to_dict(row) for row in result.scalars().all()]

    # Analytics

    async def get_analytics(self, db: AsyncSession, organization_id: UUID, days: int = 7) -> Dict[str, Any]:
        start = utc_now() - timedelta(days=days)
        result = await db.execute(
            select(GraphQLQueryLog)
            .where(GraphQLQueryLog.organization_id == organization_id, GraphQLQueryLog.created_at >= start)
            .order_by(GraphQLQueryLog.created_at.asc())
        )
        logs = list(result.scalars().all())
        total = len(logs)

        operations: Dict[str, int] = {}
        daily: Dict[str, Dict[str, float]] = {}
        for log in logs:
            name = log.operation_name or "anonymous"
            operations[name] = operations.get(name, 0) + 1
            day = daily.setdefault(log.created_at.date().isoformat(), {"count": 0, "total_time": 0.0})
            day["count"] += 1
            day["total_time"] += log.execution_time

        return {
            "total_queries": total,
            "avg_execution_time": sum(l.execution_time for l in logs) / total if total else 0.0,
            "avg_complexity": sum(l.complexity for l in logs) / total if total else 0.0,
            "cache_hit_rate": sum(1 for l in logs if l.cache_hit) / total * 100 if total else 0.0,
            "error_rate": sum(1 for l in logs if l.error) / total * 100 if total else 0.0,
            "top_queries": [
                {"name": name, "count": count}
                for name, count in sorted(operations.items(), key=lambda item: item[1], reverse=True)[:10]
            ],
            "performance_trends": [
                {
                    "date": day,
                    "avg_execution_time": values["total_time"] / values["count"],
                    "query_count": values["count"],
                }
                for day, values in sorted(daily.items())
            ],
        }


_graphql_service: Optional[GraphQLService] = None


def get_graphql_service() -> GraphQLService:
    """Get the process-wide GraphQL service."""
    global _graphql_service
    if _graphql_service is None:
        _graphql_service = GraphQLService()
    return _graphql_service
