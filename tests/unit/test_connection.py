"""
Unit Tests - Database Connection
"""
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from northwind_reports.database.connection import (
    check_database_health,
    close_database,
    create_engine,
    get_engine,
    init_database,
)
from northwind_reports.reports import StoreConnectionError


class TestCreateEngine:
    """Engine construction"""

    async def test_sqlite_engine(self, tmp_path):
        engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'northwind.db'}")
        try:
            assert isinstance(engine, AsyncEngine)
            assert engine.url.get_backend_name() == "sqlite"
        finally:
            await engine.dispose()

    def test_unparseable_url(self):
        with pytest.raises(StoreConnectionError) as exc_info:
            create_engine("not a url")

        assert exc_info.value.exit_code == 4
        assert exc_info.value.__cause__ is not None

    def test_sync_driver_rejected(self, tmp_path):
        with pytest.raises(StoreConnectionError, match="async"):
            create_engine(f"sqlite:///{tmp_path / 'northwind.db'}")


class TestGlobalEngine:
    """init_database / close_database lifecycle"""

    async def test_init_and_close(self, northwind_db_url):
        engine = await init_database(northwind_db_url)
        try:
            assert get_engine() is engine
            assert await init_database(northwind_db_url) is engine

            health = await check_database_health()
            assert health["status"] == "healthy"
        finally:
            await close_database()

        with pytest.raises(RuntimeError):
            get_engine()

    async def test_health_without_engine(self):
        health = await check_database_health()

        assert health["status"] == "unhealthy"
