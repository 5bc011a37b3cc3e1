"""
FastAPI Application

HTTP entry point for the Northwind report runner.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware
import structlog

from northwind_reports.config import get_settings
from northwind_reports.config.logging import configure_logging
from northwind_reports.database.connection import init_database, close_database
from northwind_reports.reports import ReportRunner, build_catalog
from northwind_reports.serving.api.middleware import RequestLoggingMiddleware
from northwind_reports.serving.api.routes import health_router, reports_router

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting Northwind Reports API", environment=settings.app_env)

    engine = await init_database()
    app.state.runner = ReportRunner(
        engine,
        build_catalog(settings.reports.monthly_grain),
        timeout=settings.reports.timeout_seconds,
    )

    yield

    logger.info("Shutting down...")
    app.state.runner = None
    await close_database()


app = FastAPI(
    title="Northwind Reports API",
    description="Analytical reports over the Northwind sales database",
    version=settings.version,
    debug=settings.debug,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(health_router, prefix="/api/v1", tags=["Health"])
app.include_router(reports_router, prefix="/api/v1/reports", tags=["Reports"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
