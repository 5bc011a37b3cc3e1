"""
Unit Tests - HTTP API
"""
import asyncio
from decimal import Decimal

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from northwind_reports.database.connection import close_database, init_database
from northwind_reports.main import app
from northwind_reports.reports import ReportRunner
from northwind_reports.serving.api.routes.reports import get_runner


class StalledEngine:
    """Engine stand-in whose connection checkout never finishes"""

    def connect(self):
        return asyncio.sleep(30)


@pytest.fixture
def use_runner():
    """Route requests to the given runner instead of the lifespan one"""
    def install(runner: ReportRunner):
        app.dependency_overrides[get_runner] = lambda: runner

    yield install
    app.dependency_overrides.clear()


@pytest.fixture
async def initialized_database(northwind_db_url):
    """Global engine over the sample database, as the lifespan would create"""
    engine = await init_database(northwind_db_url)
    yield engine
    await close_database()


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestReportRoutes:
    """Tests for /api/v1/reports"""

    async def test_list_reports(self, client, use_runner, runner):
        use_runner(runner)

        response = await client.get("/api/v1/reports")

        assert response.status_code == 200
        body = response.json()
        assert len(body) == 10
        assert body[0]["name"] == "total_revenue"
        assert body[0]["columns"] == [
            {"name": "total_revenue", "kind": "money"},
            {"name": "total_orders", "kind": "integer"},
        ]

    async def test_run_report(self, client, use_runner, runner):
        use_runner(runner)

        response = await client.get("/api/v1/reports/regional_revenue")

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "regional_revenue"
        assert body["row_count"] == 2
        assert body["rows"][0]["region_description"] == "Eastern"
        assert Decimal(str(body["rows"][0]["regional_revenue"])) == Decimal("111.00")
        assert "X-Request-ID" in response.headers

    async def test_unknown_report_is_404(self, client, use_runner, runner):
        use_runner(runner)

        response = await client.get("/api/v1/reports/nope")

        assert response.status_code == 404
        assert "Unknown report 'nope'" in response.json()["detail"]

    async def test_query_failure_is_500(self, client, use_runner, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        use_runner(ReportRunner(engine))
        try:
            response = await client.get("/api/v1/reports/low_stock")
        finally:
            await engine.dispose()

        assert response.status_code == 500
        assert "no such table" in response.json()["detail"]

    async def test_unreachable_store_is_503(self, client, use_runner, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'northwind.db'}")
        use_runner(ReportRunner(engine))
        try:
            response = await client.get("/api/v1/reports/low_stock")
        finally:
            await engine.dispose()

        assert response.status_code == 503

    async def test_timeout_is_504(self, client, use_runner):
        use_runner(ReportRunner(StalledEngine()))

        response = await client.get("/api/v1/reports/low_stock", params={"timeout": 0.05})

        assert response.status_code == 504

    async def test_non_positive_timeout_rejected(self, client, use_runner, runner):
        use_runner(runner)

        response = await client.get("/api/v1/reports/low_stock", params={"timeout": 0})

        assert response.status_code == 422

    async def test_runner_not_initialized(self, client):
        response = await client.get("/api/v1/reports")

        assert response.status_code == 503


class TestHealthRoutes:
    """Tests for /api/v1/health"""

    async def test_liveness(self, client):
        response = await client.get("/api/v1/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    async def test_readiness_without_database(self, client):
        response = await client.get("/api/v1/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    async def test_health_with_database(self, client, initialized_database):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["environment"]
        assert body["checks"]["database"]["status"] == "healthy"

    async def test_health_degraded_without_database(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["checks"]["database"]["status"] == "unhealthy"

    async def test_readiness_with_database(self, client, initialized_database):
        response = await client.get("/api/v1/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"
