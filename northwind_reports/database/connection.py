"""
Database Connection Management

Async SQLAlchemy 2.0 engine for the read-only report store.
Implements connection pooling, health checks, and graceful shutdown.
"""

import time
from typing import Any, Dict, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, InvalidRequestError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from northwind_reports.config import get_settings
from northwind_reports.reports.exceptions import StoreConnectionError

logger = structlog.get_logger(__name__)

# Global engine
_engine: Optional[AsyncEngine] = None


def create_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    """
    Build an async engine without registering it globally.

    Pool sizing applies to server databases only; SQLite manages its own
    connections.

    Args:
        url: Database URL, defaults to the configured one
        echo: Echo SQL statements, defaults to the configured value

    Returns:
        AsyncEngine: A new, unconnected engine

    Raises:
        StoreConnectionError: The URL does not parse or names a sync driver
    """
    settings = get_settings()
    database_url = url or settings.database.async_url

    try:
        backend = make_url(database_url).get_backend_name()
    except ArgumentError as e:
        raise StoreConnectionError(f"Invalid database URL: {e}") from e

    engine_config: Dict[str, Any] = {
        "echo": settings.database.echo if echo is None else echo,
        "pool_pre_ping": True,  # Verify connections before use
    }
    if backend != "sqlite":
        engine_config.update({
            "pool_size": settings.database.pool_size,
            "max_overflow": settings.database.max_overflow,
            "pool_timeout": settings.database.pool_timeout,
        })

    try:
        return create_async_engine(database_url, **engine_config)
    except (ArgumentError, InvalidRequestError) as e:
        logger.error("Cannot create database engine", error=str(e), error_type=type(e).__name__)
        raise StoreConnectionError(f"Cannot create database engine: {e}") from e


async def init_database(url: Optional[str] = None) -> AsyncEngine:
    """
    Initialize the global database engine.

    Connections are opened lazily; a store that is down surfaces as a
    connection error on the first report, not here.

    Args:
        url: Override for the configured database URL

    Returns:
        AsyncEngine: The initialized database engine
    """
    global _engine

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    _engine = create_engine(url)
    logger.info(
        "Database engine created",
        backend=_engine.url.get_backend_name(),
        host=_engine.url.host,
        database=_engine.url.database,
    )
    return _engine


async def close_database() -> None:
    """
    Close the database connection pool.

    Gracefully closes all connections in the pool.
    """
    global _engine

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        logger.info("Database connection pool closed")


def get_engine() -> AsyncEngine:
    """
    Get the database engine.

    Returns:
        AsyncEngine: The active database engine

    Raises:
        RuntimeError: If database is not initialized
    """
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _engine


async def check_database_health() -> dict:
    """
    Check database health status.

    Returns:
        dict: Health status with latency information
    """
    try:
        start = time.perf_counter()
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        latency_ms = (time.perf_counter() - start) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        logger.warning("Database health check failed", error=str(e), error_type=type(e).__name__)
        return {
            "status": "unhealthy",
            "error": str(e),
        }
