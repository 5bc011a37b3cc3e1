"""
Report API Endpoints

JSON access to the report catalog and runner.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
import structlog

from northwind_reports.reports import QueryDefinition, ReportError, ReportRunner

router = APIRouter()
logger = structlog.get_logger(__name__)


class ColumnSchema(BaseModel):
    """Declared output column"""
    name: str
    kind: str


class ReportInfo(BaseModel):
    """Catalog entry"""
    name: str
    title: str
    description: str
    ordering: str
    columns: List[ColumnSchema]


class ReportResult(BaseModel):
    """Executed report"""
    name: str
    title: str
    columns: List[ColumnSchema]
    rows: List[Dict[str, Any]]
    row_count: int
    duration_ms: float
    executed_at: datetime


def _column_schemas(definition: QueryDefinition) -> List[ColumnSchema]:
    return [ColumnSchema(name=c.name, kind=c.kind.value) for c in definition.columns]


def get_runner(request: Request) -> ReportRunner:
    """Runner created by the application lifespan."""
    runner = getattr(request.app.state, "runner", None)
    if runner is None:
        raise HTTPException(status_code=503, detail="Report runner is not initialized")
    return runner


@router.get("", response_model=List[ReportInfo])
async def list_reports(runner: ReportRunner = Depends(get_runner)) -> List[ReportInfo]:
    """List the available reports in catalog order."""
    return [
        ReportInfo(
            name=definition.name,
            title=definition.title,
            description=definition.description,
            ordering=definition.ordering,
            columns=_column_schemas(definition),
        )
        for definition in runner.list_queries()
    ]


@router.get("/{name}", response_model=ReportResult)
async def run_report(
    name: str,
    timeout: Optional[float] = Query(None, gt=0, description="Deadline in seconds"),
    runner: ReportRunner = Depends(get_runner),
) -> ReportResult:
    """
    Run one report.

    Unknown names return 404, an unreachable store 503, a failed statement
    500 and an exceeded deadline 504.
    """
    try:
        table = await runner.run(name, timeout=timeout)
    except ReportError as e:
        logger.warning("Report request failed", report=name, error=e.message, status_code=e.status_code)
        raise HTTPException(status_code=e.status_code, detail=e.message) from e

    return ReportResult(
        name=table.name,
        title=table.definition.title,
        columns=_column_schemas(table.definition),
        rows=table.to_records(),
        row_count=len(table),
        duration_ms=round(table.duration_ms, 2),
        executed_at=table.executed_at,
    )
