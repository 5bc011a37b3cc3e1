"""
Command Line Interface

Usage:
    northwind-reports list
    northwind-reports run category_revenue
    northwind-reports run all --format json --timeout 30

Report output goes to stdout, logs and errors to stderr. The exit status is
0 on success and the error's exit code otherwise (3 unknown report,
4 store unreachable, 5 query failed, 6 timed out).
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

import polars as pl
import structlog

from northwind_reports.config import MonthlyGrain, OutputFormat, get_settings
from northwind_reports.config.logging import configure_logging
from northwind_reports.database.connection import close_database, init_database
from northwind_reports.reports import ReportError, ReportRunner, ResultTable, build_catalog

logger = structlog.get_logger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def render(tables: List[ResultTable], output_format: OutputFormat) -> str:
    """Render result tables as one block of text."""
    if output_format is OutputFormat.JSON:
        payload = [
            {
                "report": table.name,
                "title": table.definition.title,
                "columns": [{"name": c.name, "kind": c.kind.value} for c in table.columns],
                "rows": table.to_records(),
            }
            for table in tables
        ]
        return json.dumps(payload if len(payload) > 1 else payload[0], indent=2, default=_json_default)

    blocks = []
    for table in tables:
        frame = table.to_polars()
        if output_format is OutputFormat.CSV:
            blocks.append(f"# {table.name}\n{frame.write_csv()}" if len(tables) > 1 else frame.write_csv())
        else:
            with pl.Config(
                tbl_rows=-1,
                tbl_cols=-1,
                tbl_hide_dataframe_shape=True,
                tbl_hide_column_data_types=True,
            ):
                blocks.append(f"{table.definition.title}\n{frame}")
    return "\n".join(blocks)


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: '{value}'") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="northwind-reports",
        description="Run analytical reports against the Northwind database",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List available reports")

    run_parser = subparsers.add_parser("run", help="Run one report, or all of them")
    run_parser.add_argument(
        "report",
        help="Report name, or 'all'",
    )
    run_parser.add_argument(
        "--format",
        choices=[f.value for f in OutputFormat],
        default=None,
        help="Output format (default: REPORTS_DEFAULT_FORMAT or table)",
    )
    run_parser.add_argument(
        "--timeout",
        type=_positive_float,
        default=None,
        help="Deadline per report in seconds, greater than 0",
    )
    run_parser.add_argument(
        "--monthly-grain",
        choices=[g.value for g in MonthlyGrain],
        default=None,
        help="Group monthly growth by month number or by year and month",
    )
    run_parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy async URL, overrides DATABASE_URL and POSTGRES_*",
    )
    return parser


def _list_reports() -> int:
    for definition in build_catalog().list_queries():
        print(f"{definition.name:<26}{definition.title}")
    return 0


async def _run_reports(args: argparse.Namespace) -> int:
    settings = get_settings()
    grain = MonthlyGrain(args.monthly_grain) if args.monthly_grain else settings.reports.monthly_grain
    output_format = OutputFormat(args.format) if args.format else settings.reports.default_format
    timeout = args.timeout if args.timeout is not None else settings.reports.timeout_seconds

    logger.info(
        "Running reports",
        report=args.report,
        format=output_format.value,
        monthly_grain=grain.value,
        timeout=timeout,
    )
    try:
        engine = await init_database(args.database_url)
        runner = ReportRunner(engine, build_catalog(grain), timeout=timeout)
        if args.report == "all":
            tables = list((await runner.run_all()).values())
        else:
            tables = [await runner.run(args.report)]
    except ReportError as e:
        print(f"error ({e.report_name or args.report}): {e.message}", file=sys.stderr)
        return e.exit_code
    finally:
        await close_database()

    print(render(tables, output_format))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else None, stream=sys.stderr)

    if args.command == "list":
        return _list_reports()
    return asyncio.run(_run_reports(args))


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
