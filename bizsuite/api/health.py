"""
Health endpoint.

Reports database, Redis, memory and disk status. Degraded components still
answer 200; an unhealthy component turns the response into a 503.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.database import get_db
from bizsuite.infrastructure.redis import get_redis_client
from bizsuite.services.health import UNHEALTHY, run_health_checks

router = APIRouter(tags=["health"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@router.get("/api/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    report = await run_health_checks(db, await get_redis_client())
    status_code = 503 if report["status"] == UNHEALTHY else 200
    return JSONResponse(content=report, status_code=status_code, headers=NO_CACHE_HEADERS)
