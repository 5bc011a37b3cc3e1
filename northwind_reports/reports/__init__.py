"""
Reports Module

Fixed catalog of Northwind analytical reports and the runner that executes them.
"""
from .catalog import ColumnKind, ColumnSpec, QueryDefinition, ReportCatalog, build_catalog
from .exceptions import (
    QueryError,
    QueryTimeoutError,
    ReportError,
    ReportNotFoundError,
    StoreConnectionError,
)
from .expressions import ShippingStatus, classify_shipping
from .runner import ReportRunner, ResultTable

__all__ = [
    "ColumnKind",
    "ColumnSpec",
    "QueryDefinition",
    "ReportCatalog",
    "build_catalog",
    "ReportError",
    "ReportNotFoundError",
    "StoreConnectionError",
    "QueryError",
    "QueryTimeoutError",
    "ShippingStatus",
    "classify_shipping",
    "ReportRunner",
    "ResultTable",
]
