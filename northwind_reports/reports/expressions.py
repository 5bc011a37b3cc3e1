"""
Shared SQL Expressions

Building blocks used by several reports. Everything here is a SQLAlchemy
Core construct so statements compile for PostgreSQL and SQLite alike.
"""

from enum import Enum

from sqlalchemy import Integer, Numeric, cast, func
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.sql.expression import FunctionElement

from northwind_reports.database.models import OrderDetail

FAST_MAX_DAYS = 3
NORMAL_MAX_DAYS = 7
LOW_STOCK_THRESHOLD = 10


class ShippingStatus(str, Enum):
    """Delivery speed classes"""
    FAST = "Fast"
    NORMAL = "Normal"
    DELAYED = "Delayed"


def classify_shipping(days_to_ship: int) -> ShippingStatus:
    """
    Classify delivery speed from days between order and shipment.

    Mirrors the CASE expression of the shipping performance report:
    up to 3 days is Fast, 4 to 7 Normal, anything longer Delayed.
    """
    if days_to_ship <= FAST_MAX_DAYS:
        return ShippingStatus.FAST
    if days_to_ship <= NORMAL_MAX_DAYS:
        return ShippingStatus.NORMAL
    return ShippingStatus.DELAYED


def line_revenue() -> ColumnElement:
    """unit_price * quantity * (1 - discount) for one order line."""
    return OrderDetail.unit_price * OrderDetail.quantity * (1 - OrderDetail.discount)


def round2(expression: ColumnElement) -> ColumnElement:
    """ROUND(CAST(expr AS NUMERIC), 2)"""
    return func.round(cast(expression, Numeric), 2)


class days_between(FunctionElement):
    """
    Whole days from the second date to the first.

    PostgreSQL subtracts DATE values natively; SQLite stores them as ISO
    text and needs julianday().
    """
    type = Integer()
    name = "days_between"
    inherit_cache = True


@compiles(days_between)
def _days_between_default(element, compiler, **kw):
    later, earlier = list(element.clauses)
    return "(%s - %s)" % (compiler.process(later, **kw), compiler.process(earlier, **kw))


@compiles(days_between, "sqlite")
def _days_between_sqlite(element, compiler, **kw):
    later, earlier = list(element.clauses)
    return "CAST(julianday(%s) - julianday(%s) AS INTEGER)" % (
        compiler.process(later, **kw),
        compiler.process(earlier, **kw),
    )
