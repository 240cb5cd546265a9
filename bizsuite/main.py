"""BizSuite

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bizsuite.api import (
    ai_router,
    auth_router,
    crm_router,
    dashboard_router,
    finance_router,
    graphql_router,
    health_router,
    hr_router,
    performance_router,
    projects_router,
    security_router,
    tenants_router,
    users_router,
)
from bizsuite.config.settings import get_settings
from bizsuite.database import close_db
from bizsuite.infrastructure.redis import close_redis_client, get_redis_client
from bizsuite.services.cache import get_cache_service

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"bizsuite@{settings.app_version}",
        traces_sample_rate=0.1,
    )
    logger.info("Sentry enabled")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    redis_client = await get_redis_client()
    get_cache_service().attach_redis(redis_client)
    if redis_client.is_connected:
        logger.info("Redis connection established")
    else:
        logger.warning("Redis unavailable, caching in process memory")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")
    get_cache_service().attach_redis(None)
    await close_redis_client()
    await close_db()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Multi-tenant CRM, HR, Finance and Project Management platform",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers carry their own /api/v1/... prefixes
app.include_router(auth_router)
app.include_router(tenants_router)
app.include_router(users_router)
app.include_router(crm_router)
app.include_router(hr_router)
app.include_router(finance_router)
app.include_router(projects_router)
app.include_router(ai_router)
app.include_router(performance_router)
app.include_router(graphql_router)
app.include_router(dashboard_router)
app.include_router(security_router)
app.include_router(health_router)


@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "docs": "/docs",
        "health": "/api/health"
    }


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as {"error": detail}"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request validation failures are client errors (400)"""
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": jsonable_encoder(exc.errors())},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors"""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later."
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "bizsuite.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=settings.log_level.lower()
    )
