"""
Health checks for the database, Redis, process memory and disk.

Each check reports healthy, degraded or unhealthy; the overall status is
the worst of them.
"""

import logging
import os
import resource
import shutil
import sys
import time
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.config.settings import get_settings
from bizsuite.infrastructure.redis import RedisClient
from bizsuite.models.base import utc_now

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"

_SEVERITY = {HEALTHY: 0, DEGRADED: 1, UNHEALTHY: 2}

STARTED_AT = time.time()


def _status_for(percent: float, degraded_above: float, unhealthy_above: float) -> str:
    if percent > unhealthy_above:
        return UNHEALTHY
    if percent > degraded_above:
        return DEGRADED
    return HEALTHY


def worst_status(*statuses: str) -> str:
    return max(statuses, key=lambda s: _SEVERITY[s])


async def check_database(db: AsyncSession) -> Dict[str, Any]:
    started = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": UNHEALTHY, "error": str(e)}
    return {"status": HEALTHY, "response_time": round((time.perf_counter() - started) * 1000, 2)}


async def check_redis(redis_client: Optional[RedisClient]) -> Dict[str, Any]:
    if redis_client is None or not redis_client.is_configured:
        return {"status": DEGRADED, "message": "Redis not configured, using in-memory cache"}
    if await redis_client.health_check():
        return {"status": HEALTHY}
    return {"status": UNHEALTHY, "message": "Redis not responding"}


def resident_memory_mb(statm_path: str = "/proc/self/statm") -> float:
    """
    Current resident set size of this process in megabytes.

    Reads the resident page count from statm; where procfs is missing the
    peak RSS from getrusage is the closest available figure.
    """
    try:
        with open(statm_path) as f:
            resident_pages = int(f.read().split()[1])
        return resident_pages * os.sysconf("SC_PAGE_SIZE") / (1024 * 1024)
    except (OSError, IndexError, ValueError):
        usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
        # ru_maxrss is kilobytes on Linux and bytes on macOS
        return usage / (1024 * 1024) if sys.platform == "darwin" else usage / 1024


def check_memory(used_mb: Optional[float] = None) -> Dict[str, Any]:
    """Resident memory of this process against the configured limit."""
    if used_mb is None:
        used_mb = resident_memory_mb()
    limit_mb = get_settings().memory_limit_mb
    percent = used_mb / limit_mb * 100 if limit_mb else 0.0
    return {
        "status": _status_for(percent, 75, 90),
        "used_mb": round(used_mb, 2),
        "limit_mb": limit_mb,
        "percent": round(percent, 2),
    }


def check_disk(path: str = "/") -> Dict[str, Any]:
    usage = shutil.disk_usage(path)
    percent = usage.used / usage.total * 100 if usage.total else 0.0
    return {
        "status": _status_for(percent, 85, 95),
        "free_gb": round(usage.free / 1024 ** 3, 2),
        "percent": round(percent, 2),
    }


async def run_health_checks(db: AsyncSession, redis_client: Optional[RedisClient]) -> Dict[str, Any]:
    settings = get_settings()
    checks = {
        "database": await check_database(db),
        "redis": await check_redis(redis_client),
        "memory": check_memory(),
        "disk": check_disk(),
    }
    return {
        "status": worst_status(*(check["status"] for check in checks.values())),
        "timestamp": utc_now().isoformat(),
        "version": settings.app_version,
        "environment": settings.environment,
        "uptime": round(time.time() - STARTED_AT, 2),
        "checks": checks,
    }
