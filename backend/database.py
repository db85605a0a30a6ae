"""
Grant Portal Database Connection Setup
Provides the async engine and session factory used by the service.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm.exc import StaleDataError

from backend.core.config import settings
from backend.core.exceptions import DependencyUnavailableError, PreconditionFailedError
from backend.models import Base


def _engine_options(url: str) -> dict[str, Any]:
    # SQLite (tests, local dev) uses a static pool and rejects pool sizing
    if url.startswith("sqlite"):
        return {"echo": settings.debug}
    return {
        "echo": settings.debug,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


async_engine = create_async_engine(
    settings.async_database_url,
    **_engine_options(settings.async_database_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.

    Services own their transactions, so the session is only closed here;
    anything left uncommitted by a failed request is rolled back on close.
    """
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for async database sessions.

    Use this for manual session management outside of FastAPI routes,
    e.g. inside Celery tasks.

    Usage:
        async with get_async_session() as session:
            await DecisionReleaseService(session, sender).release_decisions(...)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Run a block as one unit of work on ``session``.

    Commits when the block succeeds and rolls back on any error, so a
    failed operation never leaves partial state. Store-level failures are
    translated into the API error taxonomy:

    - a concurrent update detected by a version check or a uniqueness
      violation becomes ``PreconditionFailedError``
    - any other ``SQLAlchemyError`` becomes ``DependencyUnavailableError``

    Usage:
        async with atomic(self.db):
            loi = await self._load_for_update(loi_id)
            ...
    """
    try:
        yield session
        await session.commit()
    except StaleDataError as e:
        await session.rollback()
        raise PreconditionFailedError(
            "Record was modified by another request. Reload and try again.",
            reason="concurrent_modification",
        ) from e
    except IntegrityError as e:
        await session.rollback()
        raise PreconditionFailedError(
            "Record conflicts with an existing record.",
            reason="conflict",
        ) from e
    except SQLAlchemyError as e:
        await session.rollback()
        raise DependencyUnavailableError("record_store") from e
    except BaseException:
        await session.rollback()
        raise


# =============================================================================
# Database Initialization
# =============================================================================


async def init_db() -> None:
    """
    Initialize the database by creating all tables.

    Note: In production, use Alembic migrations instead.
    This is primarily for development and testing.
    """
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """
    Close all database connections.

    Call this during application shutdown.
    """
    await async_engine.dispose()


# =============================================================================
# Health Check
# =============================================================================


async def check_db_connection() -> dict[str, Any]:
    """
    Check database connectivity for health checks.

    Returns:
        dict with connection status and details
    """
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
            return {
                "status": "healthy",
                "database": "connected",
            }
    except Exception as e:
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "error": str(e),
        }
