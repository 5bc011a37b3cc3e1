"""
Report Catalog

The fixed set of analytical reports over the Northwind schema. Each report is
an immutable QueryDefinition: a SQLAlchemy Core statement plus the ordered,
typed output schema it promises. Declared columns are checked against the
statement when the definition is built.

Ordering is always explicit and ends in a unique key, so equal sort values
never come back in store-dependent order.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from difflib import get_close_matches
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy import Select, case, distinct, extract, func, select

from northwind_reports.config import MonthlyGrain
from northwind_reports.database.models import (
    Category,
    Employee,
    EmployeeTerritory,
    Order,
    OrderDetail,
    Product,
    Region,
    Supplier,
    Territory,
)
from .exceptions import ReportNotFoundError
from .expressions import (
    FAST_MAX_DAYS,
    LOW_STOCK_THRESHOLD,
    NORMAL_MAX_DAYS,
    ShippingStatus,
    days_between,
    line_revenue,
    round2,
)

CENT = Decimal("0.01")


class ColumnKind(str, Enum):
    """Declared type of a report column"""
    TEXT = "text"
    INTEGER = "integer"
    MONEY = "money"
    DECIMAL = "decimal"
    PERCENT = "percent"


def _to_decimal(value: Any) -> Decimal:
    if not isinstance(value, Decimal):
        # str() keeps the shortest float repr, so 34.5 becomes 34.50 not 34.4999...
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ColumnSpec:
    """One output column of a report"""
    name: str
    kind: ColumnKind

    def coerce(self, value: Any) -> Any:
        """Convert a raw driver value to the declared Python type."""
        if value is None:
            return None
        if self.kind is ColumnKind.TEXT:
            return str(value)
        if self.kind is ColumnKind.INTEGER:
            return int(value)
        if self.kind is ColumnKind.PERCENT:
            return f"{_to_decimal(value)}%"
        return _to_decimal(value)


@dataclass(frozen=True, eq=False)
class QueryDefinition:
    """
    A named, side-effect-free analytical report.

    Attributes:
        name: Catalog key, used on the command line and in URLs
        title: Short human-readable title
        description: The business question the report answers
        columns: Ordered output schema
        statement: The SELECT executed against the store
        ordering: Human-readable sort order, including tie-breakers
    """
    name: str
    title: str
    description: str
    columns: Tuple[ColumnSpec, ...]
    statement: Select
    ordering: str

    def __post_init__(self) -> None:
        selected = list(self.statement.selected_columns.keys())
        if selected != self.column_names:
            raise ValueError(
                f"Report '{self.name}' declares columns {self.column_names} "
                f"but its statement selects {selected}"
            )

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]


def _columns(*specs: Tuple[str, ColumnKind]) -> Tuple[ColumnSpec, ...]:
    return tuple(ColumnSpec(name, kind) for name, kind in specs)


# =============================================================================
# REPORTS
# =============================================================================

def total_revenue() -> QueryDefinition:
    statement = select(
        round2(func.sum(line_revenue())).label("total_revenue"),
        func.count(distinct(OrderDetail.order_id)).label("total_orders"),
    )
    return QueryDefinition(
        name="total_revenue",
        title="Total revenue and orders",
        description="Revenue across all order lines and the number of distinct orders.",
        columns=_columns(
            ("total_revenue", ColumnKind.MONEY),
            ("total_orders", ColumnKind.INTEGER),
        ),
        statement=statement,
        ordering="single row",
    )


def category_revenue() -> QueryDefinition:
    revenue = round2(func.sum(line_revenue())).label("category_revenue")
    statement = (
        select(Category.category_name, revenue)
        .select_from(Category)
        .join(Product, Product.category_id == Category.category_id)
        .join(OrderDetail, OrderDetail.product_id == Product.product_id)
        .group_by(Category.category_id, Category.category_name)
        .order_by(revenue.desc(), Category.category_name, Category.category_id)
    )
    return QueryDefinition(
        name="category_revenue",
        title="Revenue by category",
        description="Which product categories drive income.",
        columns=_columns(
            ("category_name", ColumnKind.TEXT),
            ("category_revenue", ColumnKind.MONEY),
        ),
        statement=statement,
        ordering="category_revenue desc, category_name asc",
    )


def monthly_growth(grain: MonthlyGrain = MonthlyGrain.MONTH) -> QueryDefinition:
    """
    Monthly revenue with month-over-month growth.

    With the default grain, months of different years fall into the same
    bucket (all Januaries together). YEAR_MONTH keeps years apart and lags
    across year boundaries.
    """
    month = extract("month", Order.order_date)
    periods = [month.label("sales_month")]
    groups = [month]
    specs = [("sales_month", ColumnKind.INTEGER)]
    if grain is MonthlyGrain.YEAR_MONTH:
        year = extract("year", Order.order_date)
        periods.insert(0, year.label("sales_year"))
        groups.insert(0, year)
        specs.insert(0, ("sales_year", ColumnKind.INTEGER))

    monthly = (
        select(*periods, func.sum(line_revenue()).label("revenue"))
        .select_from(Order)
        .join(OrderDetail, OrderDetail.order_id == Order.order_id)
        .group_by(*groups)
        .cte("monthly_sales")
    )
    period_columns = [monthly.c[period.name] for period in periods]
    previous = func.lag(monthly.c.revenue).over(order_by=period_columns)

    statement = select(
        *period_columns,
        round2(monthly.c.revenue).label("current_month_revenue"),
        round2(previous).label("previous_month_revenue"),
        round2((monthly.c.revenue - previous) / func.nullif(previous, 0) * 100).label("growth_rate"),
    ).order_by(*period_columns)

    return QueryDefinition(
        name="monthly_growth",
        title="Monthly revenue and growth",
        description="Revenue per month and the percentage change from the month before.",
        columns=_columns(
            *specs,
            ("current_month_revenue", ColumnKind.MONEY),
            ("previous_month_revenue", ColumnKind.MONEY),
            ("growth_rate", ColumnKind.PERCENT),
        ),
        statement=statement,
        ordering=", ".join(f"{name} asc" for name, _ in specs),
    )


def employee_city_ranking() -> QueryDefinition:
    employee_sales = (
        select(
            Employee.employee_id,
            (Employee.first_name + " " + Employee.last_name).label("employee_name"),
            Order.ship_city,
            func.sum(line_revenue()).label("total_sales"),
        )
        .select_from(Employee)
        .join(Order, Order.employee_id == Employee.employee_id)
        .join(OrderDetail, OrderDetail.order_id == Order.order_id)
        .where(Order.ship_city.is_not(None))
        .group_by(Employee.employee_id, Employee.first_name, Employee.last_name, Order.ship_city)
        .cte("employee_sales")
    )
    city_rank = (
        func.rank()
        .over(partition_by=employee_sales.c.ship_city, order_by=employee_sales.c.total_sales.desc())
        .label("city_rank")
    )
    statement = select(
        employee_sales.c.employee_name,
        employee_sales.c.ship_city,
        round2(employee_sales.c.total_sales).label("sales"),
        city_rank,
    ).order_by(
        employee_sales.c.ship_city,
        city_rank,
        employee_sales.c.employee_name,
        employee_sales.c.employee_id,
    )
    return QueryDefinition(
        name="employee_city_ranking",
        title="Employee ranking per city",
        description="Sales per employee in each ship city, ranked with ties sharing a rank.",
        columns=_columns(
            ("employee_name", ColumnKind.TEXT),
            ("ship_city", ColumnKind.TEXT),
            ("sales", ColumnKind.MONEY),
            ("city_rank", ColumnKind.INTEGER),
        ),
        statement=statement,
        ordering="ship_city asc, city_rank asc, employee_name asc, employee_id asc",
    )


def top_products_by_country(limit: int = 5) -> QueryDefinition:
    product_count = (
        select(
            Order.ship_country,
            Product.product_id,
            Product.product_name,
            func.count(OrderDetail.order_id).label("order_count"),
        )
        .select_from(Order)
        .join(OrderDetail, OrderDetail.order_id == Order.order_id)
        .join(Product, Product.product_id == OrderDetail.product_id)
        .group_by(Order.ship_country, Product.product_id, Product.product_name)
        .cte("product_count")
    )
    ranked = select(
        product_count.c.ship_country,
        product_count.c.product_name,
        product_count.c.order_count,
        func.row_number()
        .over(
            partition_by=product_count.c.ship_country,
            order_by=[
                product_count.c.order_count.desc(),
                product_count.c.product_name,
                product_count.c.product_id,
            ],
        )
        .label("rank"),
    ).subquery("ranked")
    statement = (
        select(ranked.c.ship_country, ranked.c.product_name, ranked.c.order_count, ranked.c.rank)
        .where(ranked.c.rank <= limit)
        .order_by(ranked.c.ship_country, ranked.c.rank)
    )
    return QueryDefinition(
        name="top_products_by_country",
        title=f"Top {limit} products per country",
        description="Most frequently ordered products in each ship country.",
        columns=_columns(
            ("ship_country", ColumnKind.TEXT),
            ("product_name", ColumnKind.TEXT),
            ("order_count", ColumnKind.INTEGER),
            ("rank", ColumnKind.INTEGER),
        ),
        statement=statement,
        ordering="ship_country asc, rank asc (rank ties: product_name asc, product_id asc)",
    )


def shipping_performance() -> QueryDefinition:
    base = (
        select(
            Order.order_id,
            Order.ship_country,
            days_between(Order.shipped_date, Order.order_date).label("days_to_ship"),
        )
        .where(Order.shipped_date.is_not(None))
        .cte("shipping_base")
    )
    status = case(
        (base.c.days_to_ship <= FAST_MAX_DAYS, ShippingStatus.FAST.value),
        (base.c.days_to_ship <= NORMAL_MAX_DAYS, ShippingStatus.NORMAL.value),
        else_=ShippingStatus.DELAYED.value,
    )
    country_avg = round2(func.avg(base.c.days_to_ship).over(partition_by=base.c.ship_country))
    statement = select(
        base.c.order_id,
        base.c.ship_country,
        base.c.days_to_ship,
        status.label("shipping_status"),
        country_avg.label("country_avg_days"),
        (base.c.days_to_ship - country_avg).label("diff_from_avg"),
    ).order_by(base.c.days_to_ship.desc(), base.c.order_id)
    return QueryDefinition(
        name="shipping_performance",
        title="Shipping performance",
        description="Days to ship per order, its speed class and deviation from the country average.",
        columns=_columns(
            ("order_id", ColumnKind.INTEGER),
            ("ship_country", ColumnKind.TEXT),
            ("days_to_ship", ColumnKind.INTEGER),
            ("shipping_status", ColumnKind.TEXT),
            ("country_avg_days", ColumnKind.DECIMAL),
            ("diff_from_avg", ColumnKind.DECIMAL),
        ),
        statement=statement,
        ordering="days_to_ship desc, order_id asc",
    )


def customer_segments(buckets: int = 4) -> QueryDefinition:
    spending = (
        select(Order.customer_id, func.sum(line_revenue()).label("total_spent"))
        .select_from(OrderDetail)
        .join(Order, Order.order_id == OrderDetail.order_id)
        .group_by(Order.customer_id)
        .cte("customer_spending")
    )
    segment = (
        func.ntile(buckets)
        .over(order_by=[spending.c.total_spent.desc(), spending.c.customer_id])
        .label("customer_segment")
    )
    statement = select(
        spending.c.customer_id,
        round2(spending.c.total_spent).label("total_spent"),
        segment,
    ).order_by(segment, spending.c.total_spent.desc(), spending.c.customer_id)
    return QueryDefinition(
        name="customer_segments",
        title="Customer spend quartiles",
        description="Customers split into equal-sized spend groups, segment 1 spends most.",
        columns=_columns(
            ("customer_id", ColumnKind.TEXT),
            ("total_spent", ColumnKind.MONEY),
            ("customer_segment", ColumnKind.INTEGER),
        ),
        statement=statement,
        ordering="customer_segment asc, total_spent desc, customer_id asc",
    )


def low_stock() -> QueryDefinition:
    statement = (
        select(
            Supplier.company_name.label("supplier_name"),
            Product.product_name,
            Product.units_in_stock,
        )
        .select_from(Product)
        .join(Supplier, Supplier.supplier_id == Product.supplier_id)
        .where(Product.units_in_stock < LOW_STOCK_THRESHOLD)
        .order_by(Product.units_in_stock, Product.product_id)
    )
    return QueryDefinition(
        name="low_stock",
        title="Low stock products",
        description=f"Products with fewer than {LOW_STOCK_THRESHOLD} units in stock and their suppliers.",
        columns=_columns(
            ("supplier_name", ColumnKind.TEXT),
            ("product_name", ColumnKind.TEXT),
            ("units_in_stock", ColumnKind.INTEGER),
        ),
        statement=statement,
        ordering="units_in_stock asc, product_id asc",
    )


def regional_revenue() -> QueryDefinition:
    # One row per (employee, region): several territories in the same
    # region must not repeat the employee's order lines.
    employee_regions = (
        select(EmployeeTerritory.employee_id, Territory.region_id)
        .join(Territory, Territory.territory_id == EmployeeTerritory.territory_id)
        .distinct()
        .subquery("employee_regions")
    )
    revenue = round2(func.sum(line_revenue())).label("regional_revenue")
    statement = (
        select(Region.region_description, revenue)
        .select_from(Order)
        .join(OrderDetail, OrderDetail.order_id == Order.order_id)
        .join(Employee, Employee.employee_id == Order.employee_id)
        .join(employee_regions, employee_regions.c.employee_id == Employee.employee_id)
        .join(Region, Region.region_id == employee_regions.c.region_id)
        .group_by(Region.region_id, Region.region_description)
        .order_by(revenue.desc(), Region.region_description, Region.region_id)
    )
    return QueryDefinition(
        name="regional_revenue",
        title="Revenue by region",
        description="Revenue attributed to regions through the territories of the selling employee.",
        columns=_columns(
            ("region_description", ColumnKind.TEXT),
            ("regional_revenue", ColumnKind.MONEY),
        ),
        statement=statement,
        ordering="regional_revenue desc, region_description asc",
    )


def supplier_variety() -> QueryDefinition:
    product_count = func.count(distinct(Product.product_id)).label("unique_products_count")
    statement = (
        select(Supplier.company_name, product_count)
        .select_from(Supplier)
        .outerjoin(Product, Product.supplier_id == Supplier.supplier_id)
        .group_by(Supplier.supplier_id, Supplier.company_name)
        .order_by(product_count.desc(), Supplier.company_name, Supplier.supplier_id)
    )
    return QueryDefinition(
        name="supplier_variety",
        title="Products per supplier",
        description="Distinct products supplied by each company, including suppliers with none.",
        columns=_columns(
            ("company_name", ColumnKind.TEXT),
            ("unique_products_count", ColumnKind.INTEGER),
        ),
        statement=statement,
        ordering="unique_products_count desc, company_name asc, supplier_id asc",
    )


# =============================================================================
# CATALOG
# =============================================================================

class ReportCatalog:
    """
    Ordered, read-only registry of report definitions.

    Example:
        catalog = build_catalog()
        definition = catalog.get("low_stock")
    """

    def __init__(self, definitions: Iterable[QueryDefinition]):
        self._definitions: Dict[str, QueryDefinition] = {}
        for definition in definitions:
            if definition.name in self._definitions:
                raise ValueError(f"Duplicate report name '{definition.name}'")
            self._definitions[definition.name] = definition
        if not self._definitions:
            raise ValueError("A report catalog needs at least one definition")

    def list_queries(self) -> List[QueryDefinition]:
        """All definitions in declaration order."""
        return list(self._definitions.values())

    @property
    def names(self) -> List[str]:
        return list(self._definitions)

    def get(self, name: str) -> QueryDefinition:
        """
        Look up a definition by exact name.

        Raises:
            ReportNotFoundError: If no report has this name
        """
        try:
            return self._definitions[name]
        except KeyError:
            matches = get_close_matches(name, self.names, n=1)
            raise ReportNotFoundError(
                name,
                available=self.names,
                suggestion=matches[0] if matches else None,
            ) from None

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __iter__(self) -> Iterator[QueryDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)


def build_catalog(monthly_grain: Optional[MonthlyGrain] = None) -> ReportCatalog:
    """
    Build the standard ten-report catalog.

    Args:
        monthly_grain: Grouping for the monthly growth report, month number
            only unless YEAR_MONTH is given
    """
    return ReportCatalog([
        total_revenue(),
        category_revenue(),
        monthly_growth(monthly_grain or MonthlyGrain.MONTH),
        employee_city_ranking(),
        top_products_by_country(),
        shipping_performance(),
        customer_segments(),
        low_stock(),
        regional_revenue(),
        supplier_variety(),
    ])
