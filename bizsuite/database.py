"""
Database session management.

Builds the async engine from settings and provides the session factory and
the FastAPI session dependency. PostgreSQL (asyncpg) gets a sized connection
pool; SQLite and the test environment run without pool tuning.
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from bizsuite.config.settings import BizSuiteConfig, get_settings
from bizsuite.models.base import Base


def async_database_url(url: str) -> str:
    """Use the asyncpg driver for plain postgresql:// URLs."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def engine_options(config: BizSuiteConfig) -> Dict[str, Any]:
    """Keyword arguments for create_async_engine."""
    options: Dict[str, Any] = {"echo": config.sql_echo}

    if config.environment == "test":
        # Every test opens its own connections
        options["poolclass"] = NullPool
        return options

    if config.database_url.startswith("sqlite"):
        return options

    options.update(
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_timeout=config.db_pool_timeout,
        pool_recycle=config.db_pool_recycle,
        pool_pre_ping=True,
    )
    return options


settings = get_settings()

DATABASE_URL = async_database_url(settings.database_url)

engine = create_async_engine(DATABASE_URL, **engine_options(settings))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Session per request; rolled back if the handler raises.

    Routes commit explicitly, usually through commit_with_audit, so a
    mutation and its audit row land in the same transaction.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Create all tables. Deployments use the Alembic migrations instead."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db() -> None:
    """
    Drop all database tables.

    WARNING: This will delete all data!
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def close_db() -> None:
    """Close database engine and clean up connections."""
    await engine.dispose()
