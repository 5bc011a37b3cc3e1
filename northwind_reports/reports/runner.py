"""
Report Runner

Executes catalog definitions against the connected store and materializes
typed, ordered result tables.

A run is one connection checkout, one statement and a full fetch. The runner
keeps no state between runs, so concurrent runs only need a pooled engine.
Nothing is retried: connection failures, statement failures and deadlines
surface to the caller as ReportError subclasses, never as partial results.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

import polars as pl
import structlog
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from .catalog import ColumnKind, ColumnSpec, QueryDefinition, ReportCatalog, build_catalog
from .exceptions import QueryError, QueryTimeoutError, StoreConnectionError

logger = structlog.get_logger(__name__)

POLARS_TYPES = {
    ColumnKind.TEXT: pl.Utf8,
    ColumnKind.INTEGER: pl.Int64,
    ColumnKind.MONEY: pl.Decimal(precision=18, scale=2),
    ColumnKind.DECIMAL: pl.Decimal(precision=18, scale=2),
    ColumnKind.PERCENT: pl.Utf8,
}


@dataclass
class ResultTable:
    """Materialized result of one report run"""
    definition: QueryDefinition
    rows: List[Dict[str, Any]]
    duration_ms: float = 0.0
    executed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def columns(self) -> List[ColumnSpec]:
        return list(self.definition.columns)

    @property
    def column_names(self) -> List[str]:
        return self.definition.column_names

    def to_records(self) -> List[Dict[str, Any]]:
        """Rows as plain dictionaries in column order."""
        return [dict(row) for row in self.rows]

    def to_polars(self) -> pl.DataFrame:
        """Rows as a polars DataFrame typed from the declared schema."""
        return pl.DataFrame([
            pl.Series(
                column.name,
                [row[column.name] for row in self.rows],
                dtype=POLARS_TYPES[column.kind],
            )
            for column in self.definition.columns
        ])

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)


class ReportRunner:
    """
    Runs named reports against an async SQLAlchemy engine.

    Example:
        runner = ReportRunner(engine)
        table = await runner.run("category_revenue")
    """

    def __init__(
        self,
        engine: AsyncEngine,
        catalog: Optional[ReportCatalog] = None,
        timeout: Optional[float] = None,
    ):
        self.engine = engine
        self.catalog = catalog or build_catalog()
        self.timeout = timeout

    def list_queries(self) -> List[QueryDefinition]:
        return self.catalog.list_queries()

    async def run(self, name: str, timeout: Optional[float] = None) -> ResultTable:
        """
        Execute one report.

        Args:
            name: Catalog name of the report
            timeout: Deadline in seconds, defaults to the runner's

        Returns:
            ResultTable: Typed rows in the report's declared order

        Raises:
            ReportNotFoundError: Unknown report name
            StoreConnectionError: The store could not be reached
            QueryError: The store failed the statement
            QueryTimeoutError: The deadline passed first
        """
        definition = self.catalog.get(name)
        deadline = timeout if timeout is not None else self.timeout

        logger.debug("Running report", report=name, timeout=deadline)
        start = time.perf_counter()
        try:
            raw_rows = await asyncio.wait_for(self._execute(definition), timeout=deadline)
        except asyncio.TimeoutError as e:
            logger.error("Report timed out", report=name, timeout=deadline)
            raise QueryTimeoutError(name, deadline) from e
        duration_ms = (time.perf_counter() - start) * 1000

        rows = [
            {column.name: column.coerce(raw[column.name]) for column in definition.columns}
            for raw in raw_rows
        ]
        logger.info(
            "Report completed",
            report=name,
            rows=len(rows),
            duration_ms=round(duration_ms, 2),
        )
        return ResultTable(definition=definition, rows=rows, duration_ms=duration_ms)

    async def run_all(self, timeout: Optional[float] = None) -> Dict[str, ResultTable]:
        """Run every report in catalog order, stopping at the first failure."""
        results: Dict[str, ResultTable] = {}
        for definition in self.catalog:
            results[definition.name] = await self.run(definition.name, timeout=timeout)
        return results

    async def _execute(self, definition: QueryDefinition) -> List[Dict[str, Any]]:
        try:
            connection = await self.engine.connect()
        except (SQLAlchemyError, OSError) as e:
            logger.error(
                "Store unreachable",
                report=definition.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StoreConnectionError(
                f"Cannot connect to the store for report '{definition.name}': {e}",
                definition.name,
            ) from e

        try:
            result = await connection.execute(definition.statement)
            keys = list(result.keys())
            raw_rows = [dict(row) for row in result.mappings().all()]
        except DBAPIError as e:
            if e.connection_invalidated:
                raise StoreConnectionError(
                    f"Lost the store connection during report '{definition.name}': {e.orig}",
                    definition.name,
                ) from e
            logger.error("Report query failed", report=definition.name, error=str(e.orig))
            raise QueryError(f"Report '{definition.name}' failed: {e.orig}", definition.name) from e
        except SQLAlchemyError as e:
            logger.error("Report query failed", report=definition.name, error=str(e))
            raise QueryError(f"Report '{definition.name}' failed: {e}", definition.name) from e
        finally:
            await connection.close()

        if keys != definition.column_names:
            raise QueryError(
                f"Report '{definition.name}' returned columns {keys}, "
                f"expected {definition.column_names}",
                definition.name,
            )
        return raw_rows
