"""
Performance API routes: metrics, alerts, thresholds, cache and query optimization.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.database import get_db
from bizsuite.middleware.auth import get_current_active_user, require_permissions
from bizsuite.models import User
from bizsuite.services.cache import get_cache_service
from bizsuite.services.performance import MetricType, get_performance_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/performance", tags=["performance"])


# Pydantic schemas
class MetricCreate(BaseModel):
    metric_type: MetricType
    value: float
    endpoint: Optional[str] = Field(None, max_length=255)
    additional_data: Optional[Dict[str, float]] = None


class MetricResponse(BaseModel):
    id: UUID
    organization_id: Optional[UUID]
    metric_type: str
    endpoint: Optional[str]
    value: float
    response_time: Optional[float]
    cpu_usage: Optional[float]
    memory_usage: Optional[float]
    db_query_time: Optional[float]
    error_rate: Optional[float]
    throughput: Optional[float]
    timestamp: datetime

    class Config:
        from_attributes = True


class ThresholdUpdate(BaseModel):
    metric_type: MetricType
    warning: float = Field(..., ge=0)
    critical: float = Field(..., ge=0)
    endpoint: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def check_order(self):
        # Throughput alerts when it drops, so its critical level sits below the warning
        if self.metric_type == MetricType.THROUGHPUT:
            if self.critical > self.warning:
                raise ValueError("critical must not exceed warning for THROUGHPUT")
        elif self.critical < self.warning:
            raise ValueError("critical must not be below warning")
        return self


class CacheInvalidate(BaseModel):
    pattern: Optional[str] = None
    tags: Optional[List[str]] = None


class QueryOptimizationRequest(BaseModel):
    query: str = Field(..., min_length=1)
    params: Optional[List[Any]] = None
    execution_time: float = Field(0.0, ge=0)


def _threshold_dict(threshold) -> Dict[str, Any]:
    return {
        "metric_type": threshold.metric_type.value,
        "warning": threshold.warning,
        "critical": threshold.critical,
        "endpoint": threshold.endpoint,
    }


# Metrics

@router.get("/metrics", response_model=List[MetricResponse])
async def list_metrics(
    metric_type: Optional[MetricType] = None,
    endpoint: Optional[str] = None,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Metric samples of the organization plus system-wide samples, newest first."""
    return await get_performance_service().get_metrics(
        db,
        organization_id=current_user.organization_id,
        metric_type=metric_type,
        endpoint=endpoint,
        start_time=start_time,
        end_time=end_time,
        limit=limit,
    )


@router.post("/metrics", response_model=MetricResponse, status_code=status.HTTP_201_CREATED)
async def record_metric(
    data: MetricCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Record a metric sample; crossing a threshold raises an alert."""
    metric = await get_performance_service().record_metric(
        db,
        data.metric_type,
        data.value,
        endpoint=data.endpoint,
        organization_id=current_user.organization_id,
        additional_data=data.additional_data,
    )
    await db.commit()
    return metric


@router.delete("/metrics")
async def clean_metrics(
    days: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("admin:manage")),
):
    """Delete the organization's samples older than the retention period."""
    removed = await get_performance_service().clean_old_metrics(db, days, current_user.organization_id)
    await db.commit()
    return {"removed": removed}


@router.get("/stats")
async def performance_stats(
    hours: int = Query(24, ge=1, le=24 * 30),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_performance_service().get_performance_stats(db, current_user.organization_id, hours)


# Alerts

@router.get("/alerts")
async def list_alerts(current_user: User = Depends(get_current_active_user)):
    alerts = get_performance_service().get_active_alerts(current_user.organization_id)
    return {"alerts": [alert.to_dict() for alert in alerts]}


@router.post("/alerts/{alert_id}/acknowledge")
async def acknowledge_alert(
    alert_id: str,
    current_user: User = Depends(get_current_active_user),
):
    if not get_performance_service().acknowledge_alert(alert_id, current_user.organization_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Alert not found")
    logger.info(f"Alert {alert_id} acknowledged by {current_user.email}")
    return {"id": alert_id, "acknowledged": True}


# Thresholds

@router.get("/thresholds")
async def list_thresholds(current_user: User = Depends(get_current_active_user)):
    thresholds = get_performance_service().list_thresholds(current_user.organization_id)
    return {"thresholds": [_threshold_dict(t) for t in thresholds]}


@router.put("/thresholds")
async def update_threshold(
    data: ThresholdUpdate,
    current_user: User = Depends(require_permissions("admin:manage")),
):
    threshold = get_performance_service().update_threshold(
        data.metric_type,
        data.warning,
        data.critical,
        endpoint=data.endpoint,
        organization_id=current_user.organization_id,
    )
    return _threshold_dict(threshold)


# Cache

@router.get("/cache")
async def cache_metrics(current_user: User = Depends(get_current_active_user)):
    return await get_cache_service().get_performance_metrics(current_user.organization_id)


@router.post("/cache/invalidate")
async def invalidate_cache(
    data: CacheInvalidate,
    current_user: User = Depends(get_current_active_user),
):
    """
    Invalidate cached entries of the organization by key pattern or by tags.

    Raises:
        HTTPException: 400 if neither pattern nor tags is given
    """
    if not data.pattern and not data.tags:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either pattern or tags is required",
        )

    service = get_cache_service()
    removed = 0
    if data.pattern:
        removed += await service.invalidate_cache(data.pattern, current_user.organization_id)
    if data.tags:
        removed += await service.invalidate_cache_by_tags(data.tags, current_user.organization_id)
    return {"invalidated": removed}


# Query and resource optimization

@router.get("/optimization")
async def optimization_overview(
    action: str = Query("analytics", pattern=r"^(analytics|recommendations)$"),
    current_user: User = Depends(get_current_active_user),
):
    service = get_cache_service()
    if action == "recommendations":
        return {"recommendations": await service.get_recommendations(current_user.organization_id)}
    return await service.get_optimization_analytics(current_user.organization_id)


@router.post("/optimization/query")
async def optimize_query(
    data: QueryOptimizationRequest,
    current_user: User = Depends(get_current_active_user),
):
    return get_cache_service().optimize_query(
        data.query, data.params, data.execution_time, current_user.organization_id
    )


@router.post("/optimization/resources")
async def optimize_resources(current_user: User = Depends(require_permissions("admin:manage"))):
    return await get_cache_service().optimize_resources()
