"""
Performance monitoring models: metric samples and GraphQL query log.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, Text, Float, Integer, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

from bizsuite.models.base import Base, utc_now


class PerformanceMetric(Base):
    """
    One performance sample.

    organization_id is optional: system-wide samples (CPU, memory) are not
    tied to a tenant.
    """

    __tablename__ = "performance_metrics"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )
    organization_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    # API_RESPONSE_TIME, DATABASE_QUERY_TIME, CPU_USAGE, MEMORY_USAGE, ERROR_RATE, THROUGHPUT
    metric_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    endpoint: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    value: Mapped[float] = mapped_column(Float, nullable=False)

    response_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    cpu_usage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    memory_usage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    db_query_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    error_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    throughput: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<PerformanceMetric(type={self.metric_type}, value={self.value})>"


class GraphQLQueryLog(Base):
    """Execution record of one GraphQL query."""

    __tablename__ = "graphql_query_logs"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )
    organization_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    query_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    operation_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    complexity: Mapped[int] = mapped_column(Integer, default=0)
    execution_time: Mapped[float] = mapped_column(Float, default=0.0)  # milliseconds
    cache_hit: Mapped[bool] = mapped_column(Boolean, default=False)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<GraphQLQueryLog(hash={self.query_hash}, complexity={self.complexity})>"
