"""
Performance monitoring: metric recording, threshold alerting and statistics.

Metric samples are persisted as PerformanceMetric rows. Thresholds and the
alert queue live in process memory.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.config.settings import get_settings
from bizsuite.models import PerformanceMetric
from bizsuite.models.base import utc_now

logger = logging.getLogger(__name__)


class MetricType(str, Enum):
    API_RESPONSE_TIME = "API_RESPONSE_TIME"
    DATABASE_QUERY_TIME = "DATABASE_QUERY_TIME"
    CPU_USAGE = "CPU_USAGE"
    MEMORY_USAGE = "MEMORY_USAGE"
    ERROR_RATE = "ERROR_RATE"
    THROUGHPUT = "THROUGHPUT"


# Metric types where a lower value is worse
LOWER_IS_WORSE = {MetricType.THROUGHPUT}

# Column that mirrors the value for each metric type
METRIC_COLUMNS = {
    MetricType.API_RESPONSE_TIME: "response_time",
    MetricType.DATABASE_QUERY_TIME: "db_query_time",
    MetricType.CPU_USAGE: "cpu_usage",
    MetricType.MEMORY_USAGE: "memory_usage",
    MetricType.ERROR_RATE: "error_rate",
    MetricType.THROUGHPUT: "throughput",
}


@dataclass
class PerformanceThreshold:
    """Warning/critical pair for one metric type, optionally per endpoint."""

    metric_type: MetricType
    warning: float
    critical: float
    endpoint: Optional[str] = None


@dataclass
class PerformanceAlert:
    """Alert raised when a metric crosses a threshold."""

    type: str
    severity: str  # HIGH or CRITICAL
    message: str
    threshold: float
    current_value: float
    endpoint: Optional[str] = None
    organization_id: Optional[UUID] = None
    id: str = field(default_factory=lambda: f"alert_{uuid4().hex[:12]}")
    triggered_at: datetime = field(default_factory=utc_now)
    acknowledged_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "message": self.message,
            "threshold": self.threshold,
            "current_value": self.current_value,
            "endpoint": self.endpoint,
            "triggered_at": self.triggered_at.isoformat(),
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
        }


def default_thresholds() -> Dict[str, PerformanceThreshold]:
    return {
        MetricType.API_RESPONSE_TIME.value: PerformanceThreshold(MetricType.API_RESPONSE_TIME, 1000, 3000),
        MetricType.DATABASE_QUERY_TIME.value: PerformanceThreshold(MetricType.DATABASE_QUERY_TIME, 500, 2000),
        MetricType.CPU_USAGE.value: PerformanceThreshold(MetricType.CPU_USAGE, 70, 90),
        MetricType.MEMORY_USAGE.value: PerformanceThreshold(MetricType.MEMORY_USAGE, 80, 95),
        MetricType.ERROR_RATE.value: PerformanceThreshold(MetricType.ERROR_RATE, 5, 15),
        MetricType.THROUGHPUT.value: PerformanceThreshold(MetricType.THROUGHPUT, 10, 5),
    }


class PerformanceService:
    """Records metrics and raises alerts against configurable thresholds."""

    def __init__(self):
        # System defaults; organizations override them in org_thresholds
        self.thresholds: Dict[str, PerformanceThreshold] = default_thresholds()
        self.org_thresholds: Dict[Tuple[UUID, str], PerformanceThreshold] = {}
        self.alerts: List[PerformanceAlert] = []

    # Thresholds

    @staticmethod
    def _threshold_key(metric_type: MetricType, endpoint: Optional[str] = None) -> str:
        return f"{metric_type.value}_{endpoint}" if endpoint else metric_type.value

    def get_threshold(
        self,
        metric_type: MetricType,
        endpoint: Optional[str] = None,
        organization_id: Optional[UUID] = None,
    ) -> Optional[PerformanceThreshold]:
        """
        Resolve the threshold for a sample.

        Lookup order: the organization's endpoint threshold, the organization's
        type threshold, then the same two among the system defaults.
        """
        keys = [metric_type.value]
        if endpoint:
            keys.insert(0, self._threshold_key(metric_type, endpoint))

        if organization_id is not None:
            for key in keys:
                threshold = self.org_thresholds.get((organization_id, key))
                if threshold:
                    return threshold
        for key in keys:
            threshold = self.thresholds.get(key)
            if threshold:
                return threshold
        return None

    def list_thresholds(self, organization_id: Optional[UUID] = None) -> List[PerformanceThreshold]:
        """Thresholds in effect for an organization: its overrides plus untouched defaults."""
        effective = dict(self.thresholds)
        if organization_id is not None:
            for (org_id, key), threshold in self.org_thresholds.items():
                if org_id == organization_id:
                    effective[key] = threshold
        return list(effective.values())

    def update_threshold(
        self,
        metric_type: MetricType,
        warning: float,
        critical: float,
        endpoint: Optional[str] = None,
        organization_id: Optional[UUID] = None,
    ) -> PerformanceThreshold:
        """Set a threshold for one organization, or the system default when organization_id is None."""
        key = self._threshold_key(metric_type, endpoint)
        threshold = PerformanceThreshold(metric_type, warning, critical, endpoint)
        if organization_id is None:
            self.thresholds[key] = threshold
        else:
            self.org_thresholds[(organization_id, key)] = threshold
        logger.info(
            f"Updated threshold {key} for organization {organization_id}: warning={warning}, critical={critical}"
        )
        return threshold

    def check_thresholds(
        self,
        metric_type: MetricType,
        value: float,
        endpoint: Optional[str] = None,
        organization_id: Optional[UUID] = None,
    ) -> Optional[PerformanceAlert]:
        """Push an alert onto the queue when value crosses a threshold."""
        threshold = self.get_threshold(metric_type, endpoint, organization_id)
        if threshold is None:
            return None

        if metric_type in LOWER_IS_WORSE:
            crossed_critical = value <= threshold.critical
            crossed_warning = value <= threshold.warning
            comparison = "<="
        else:
            crossed_critical = value >= threshold.critical
            crossed_warning = value >= threshold.warning
            comparison = ">="

        if crossed_critical:
            severity, limit, level = "CRITICAL", threshold.critical, "critical"
        elif crossed_warning:
            severity, limit, level = "HIGH", threshold.warning, "warning"
        else:
            return None

        alert = PerformanceAlert(
            type=metric_type.value,
            severity=severity,
            message=f"{metric_type.value} exceeded {level} threshold: {value} {comparison} {limit}",
            threshold=limit,
            current_value=value,
            endpoint=endpoint,
            organization_id=organization_id,
        )
        self.alerts.append(alert)

        if severity == "CRITICAL":
            logger.error(f"CRITICAL performance alert: {alert.message} (endpoint={endpoint})")
        else:
            logger.warning(f"Performance alert: {alert.message} (endpoint={endpoint})")

        return alert

    # Alerts

    def _visible_to(self, alert: PerformanceAlert, organization_id: Optional[UUID]) -> bool:
        return organization_id is None or alert.organization_id in (None, organization_id)

    def get_active_alerts(self, organization_id: Optional[UUID] = None) -> List[PerformanceAlert]:
        return [
            alert
            for alert in self.alerts
            if alert.acknowledged_at is None and self._visible_to(alert, organization_id)
        ]

    def acknowledge_alert(self, alert_id: str, organization_id: Optional[UUID] = None) -> bool:
        for alert in self.alerts:
            if alert.id == alert_id and self._visible_to(alert, organization_id):
                alert.acknowledged_at = utc_now()
                return True
        return False

    # Metrics

    async def record_metric(
        self,
        db: AsyncSession,
        metric_type: MetricType,
        value: float,
        endpoint: Optional[str] = None,
        organization_id: Optional[UUID] = None,
        additional_data: Optional[Dict[str, float]] = None,
    ) -> PerformanceMetric:
        """Persist a metric sample and check it against thresholds."""
        columns = dict(additional_data or {})
        columns.setdefault(METRIC_COLUMNS[metric_type], value)

        metric = PerformanceMetric(
            organization_id=organization_id,
            metric_type=metric_type.value,
            endpoint=endpoint,
            value=value,
            **{name: columns.get(name) for name in METRIC_COLUMNS.values()},
        )
        db.add(metric)
        await db.flush()

        self.check_thresholds(metric_type, value, endpoint, organization_id)
        return metric

    async def record_api_request(
        self,
        db: AsyncSession,
        endpoint: str,
        response_time: float,
        status_code: int,
        organization_id: Optional[UUID] = None,
    ) -> None:
        await self.record_metric(db, MetricType.API_RESPONSE_TIME, response_time, endpoint, organization_id)
        if status_code >= 400:
            await self.record_metric(db, MetricType.ERROR_RATE, 1, endpoint, organization_id)

    async def record_system_metrics(
        self,
        db: AsyncSession,
        cpu_usage: float,
        memory_usage: float,
        organization_id: Optional[UUID] = None,
    ) -> None:
        await self.record_metric(db, MetricType.CPU_USAGE, cpu_usage, organization_id=organization_id)
        await self.record_metric(db, MetricType.MEMORY_USAGE, memory_usage, organization_id=organization_id)

    @staticmethod
    def _scope(stmt, organization_id: Optional[UUID]):
        # System-wide samples are visible to every tenant
        if organization_id is None:
            return stmt
        return stmt.where(
            or_(
                PerformanceMetric.organization_id == organization_id,
                PerformanceMetric.organization_id.is_(None),
            )
        )

    async def get_metrics(
        self,
        db: AsyncSession,
        organization_id: Optional[UUID] = None,
        metric_type: Optional[MetricType] = None,
        endpoint: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[PerformanceMetric]:
        stmt = self._scope(select(PerformanceMetric), organization_id)
        if metric_type:
            stmt = stmt.where(PerformanceMetric.metric_type == metric_type.value)
        if endpoint:
            stmt = stmt.where(PerformanceMetric.endpoint == endpoint)
        if start_time:
            stmt = stmt.where(PerformanceMetric.timestamp >= start_time)
        if end_time:
            stmt = stmt.where(PerformanceMetric.timestamp <= end_time)

        stmt = stmt.order_by(PerformanceMetric.timestamp.desc()).limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    def calculate_performance_score(
        avg_response_time: float,
        avg_cpu_usage: float,
        avg_memory_usage: float,
        avg_error_rate: float,
    ) -> int:
        """Overall 0-100 score; 1000 ms response time or 10% errors score zero."""
        response_score = max(0.0, 100 - avg_response_time / 10)
        cpu_score = max(0.0, 100 - avg_cpu_usage)
        memory_score = max(0.0, 100 - avg_memory_usage)
        error_score = max(0.0, 100 - avg_error_rate * 10)
        return round((response_score + cpu_score + memory_score + error_score) / 4)

    async def get_performance_stats(
        self,
        db: AsyncSession,
        organization_id: Optional[UUID] = None,
        hours: int = 24,
    ) -> Dict[str, Any]:
        start_time = utc_now() - timedelta(hours=hours)
        stmt = self._scope(
            select(PerformanceMetric).where(PerformanceMetric.timestamp >= start_time),
            organization_id,
        ).order_by(PerformanceMetric.timestamp.asc())
        result = await db.execute(stmt)
        metrics = list(result.scalars().all())

        averages = {
            metric_type: _mean([m.value for m in metrics if m.metric_type == metric_type.value])
            for metric_type in MetricType
        }

        alerts = [a for a in self.alerts if self._visible_to(a, organization_id)]
        active = [a for a in alerts if a.acknowledged_at is None]

        return {
            "overall_score": self.calculate_performance_score(
                averages[MetricType.API_RESPONSE_TIME],
                averages[MetricType.CPU_USAGE],
                averages[MetricType.MEMORY_USAGE],
                averages[MetricType.ERROR_RATE],
            ),
            "average_response_time": averages[MetricType.API_RESPONSE_TIME],
            "average_cpu_usage": averages[MetricType.CPU_USAGE],
            "average_memory_usage": averages[MetricType.MEMORY_USAGE],
            "average_db_query_time": averages[MetricType.DATABASE_QUERY_TIME],
            "error_rate": averages[MetricType.ERROR_RATE],
            "throughput": averages[MetricType.THROUGHPUT],
            "alerts": {
                "active": len(active),
                "total": len(alerts),
                "critical": sum(1 for a in active if a.severity == "CRITICAL"),
            },
            "trends": self.hourly_trends(metrics),
        }

    @staticmethod
    def hourly_trends(metrics: List[PerformanceMetric]) -> List[Dict[str, Any]]:
        """Average the main metric types per hour bucket, oldest first."""
        buckets: Dict[datetime, Dict[str, List[float]]] = {}
        for metric in metrics:
            hour = metric.timestamp.replace(minute=0, second=0, microsecond=0)
            buckets.setdefault(hour, {}).setdefault(metric.metric_type, []).append(metric.value)

        return [
            {
                "timestamp": hour.isoformat(),
                "response_time": _mean(values.get(MetricType.API_RESPONSE_TIME.value, [])),
                "cpu_usage": _mean(values.get(MetricType.CPU_USAGE.value, [])),
                "memory_usage": _mean(values.get(MetricType.MEMORY_USAGE.value, [])),
                "error_rate": _mean(values.get(MetricType.ERROR_RATE.value, [])),
            }
            for hour, values in sorted(buckets.items())
        ]

    async def clean_old_metrics(
        self,
        db: AsyncSession,
        days: Optional[int] = None,
        organization_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete metric rows and drop alerts older than the retention window.

        With an organization_id only that organization's samples and alerts
        are touched; without one the cleanup is system-wide.
        """
        retention = days if days is not None else get_settings().metrics_retention_days
        cutoff = utc_now() - timedelta(days=retention)

        stmt = delete(PerformanceMetric).where(PerformanceMetric.timestamp < cutoff)
        if organization_id is not None:
            stmt = stmt.where(PerformanceMetric.organization_id == organization_id)
        result = await db.execute(stmt)

        self.alerts = [
            a
            for a in self.alerts
            if a.triggered_at > cutoff or (organization_id is not None and a.organization_id != organization_id)
        ]

        logger.info(
            f"Removed {result.rowcount} performance metrics older than {retention} days "
            f"(organization={organization_id or 'all'})"
        )
        return result.rowcount


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


_performance_service: Optional[PerformanceService] = None


def get_performance_service() -> PerformanceService:
    """Get the process-wide performance service."""
    global _performance_service
    if _performance_service is None:
        _performance_service = PerformanceService()
    return _performance_service
