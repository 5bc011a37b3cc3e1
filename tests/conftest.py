"""
Test Suite Configuration

Reports run against SQLite files seeded through the same SQLAlchemy models
the statements are built from.
"""
from datetime import date
from typing import Any, Dict, List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import create_async_engine

from northwind_reports.config import Settings
from northwind_reports.database.models import Base
from northwind_reports.reports import ReportRunner


# Expected results for this dataset are spelled out in tests/unit/test_runner.py
NORTHWIND_DATA: Dict[str, List[Dict[str, Any]]] = {
    "categories": [
        {"category_id": 1, "category_name": "Beverages"},
        {"category_id": 2, "category_name": "Condiments"},
    ],
    "suppliers": [
        {"supplier_id": 1, "company_name": "Exotic Liquids", "country": "UK"},
        {"supplier_id": 2, "company_name": "Tokyo Traders", "country": "Japan"},
        {"supplier_id": 3, "company_name": "Empty Shelf Co", "country": "USA"},
    ],
    "products": [
        {"product_id": 1, "product_name": "Chai", "supplier_id": 1, "category_id": 1, "units_in_stock": 39},
        {"product_id": 2, "product_name": "Chang", "supplier_id": 1, "category_id": 1, "units_in_stock": 17},
        {"product_id": 3, "product_name": "Aniseed Syrup", "supplier_id": 1, "category_id": 2, "units_in_stock": 9},
        {"product_id": 4, "product_name": "Ikura", "supplier_id": 2, "category_id": 2, "units_in_stock": 10},
        {"product_id": 5, "product_name": "Konbu", "supplier_id": 2, "category_id": 2, "units_in_stock": 0},
        {"product_id": 6, "product_name": "Tofu", "supplier_id": 2, "category_id": 2, "units_in_stock": 35},
        {"product_id": 7, "product_name": "Pavlova", "supplier_id": 2, "category_id": 1, "units_in_stock": 29},
    ],
    "region": [
        {"region_id": 1, "region_description": "Eastern"},
        {"region_id": 2, "region_description": "Western"},
    ],
    "territories": [
        {"territory_id": "01581", "territory_description": "Westboro", "region_id": 1},
        {"territory_id": "01730", "territory_description": "Bedford", "region_id": 1},
        {"territory_id": "98052", "territory_description": "Redmond", "region_id": 2},
    ],
    "employees": [
        {"employee_id": 1, "first_name": "Nancy", "last_name": "Davolio"},
        {"employee_id": 2, "first_name": "Andrew", "last_name": "Fuller"},
        {"employee_id": 3, "first_name": "Janet", "last_name": "Leverling"},
    ],
    # Nancy covers two Eastern territories; Janet covers none
    "employee_territories": [
        {"employee_id": 1, "territory_id": "01581"},
        {"employee_id": 1, "territory_id": "01730"},
        {"employee_id": 2, "territory_id": "98052"},
    ],
    "orders": [
        {"order_id": 10248, "customer_id": "VINET", "employee_id": 1, "order_date": date(2024, 1, 1),
         "shipped_date": date(2024, 1, 4), "ship_city": "Reims", "ship_country": "France"},
        {"order_id": 10249, "customer_id": "TOMSP", "employee_id": 2, "order_date": date(2024, 1, 15),
         "shipped_date": date(2024, 1, 22), "ship_city": "Münster", "ship_country": "Germany"},
        {"order_id": 10250, "customer_id": "HANAR", "employee_id": 1, "order_date": date(2024, 2, 3),
         "shipped_date": date(2024, 2, 11), "ship_city": "Reims", "ship_country": "France"},
        {"order_id": 10251, "customer_id": "VICTE", "employee_id": 3, "order_date": date(2024, 3, 10),
         "shipped_date": None, "ship_city": "Lyon", "ship_country": "France"},
        {"order_id": 10252, "customer_id": "VINET", "employee_id": 2, "order_date": date(2024, 3, 12),
         "shipped_date": date(2024, 3, 13), "ship_city": "Reims", "ship_country": "France"},
    ],
    "order_details": [
        {"order_id": 10248, "product_id": 1, "unit_price": 10.0, "quantity": 2, "discount": 0.0},
        {"order_id": 10248, "product_id": 3, "unit_price": 5.0, "quantity": 1, "discount": 0.1},
        {"order_id": 10248, "product_id": 5, "unit_price": 20.0, "quantity": 1, "discount": 0.5},
        {"order_id": 10249, "product_id": 2, "unit_price": 19.0, "quantity": 2, "discount": 0.0},
        {"order_id": 10250, "product_id": 1, "unit_price": 10.0, "quantity": 3, "discount": 0.0},
        {"order_id": 10250, "product_id": 6, "unit_price": 23.25, "quantity": 2, "discount": 0.0},
        {"order_id": 10251, "product_id": 7, "unit_price": 17.45, "quantity": 1, "discount": 0.0},
        {"order_id": 10252, "product_id": 2, "unit_price": 19.0, "quantity": 1, "discount": 0.0},
    ],
}


def load_northwind(connection, data: Dict[str, List[Dict[str, Any]]]) -> None:
    """Create the schema and insert the given rows (sync connection)."""
    Base.metadata.create_all(connection)
    for table in Base.metadata.sorted_tables:
        rows = data.get(table.name)
        if rows:
            connection.execute(table.insert(), rows)


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        DEBUG=True,
    )


@pytest.fixture
async def engine_factory(tmp_path):
    """Build async engines over freshly seeded SQLite files"""
    engines = []

    async def build(data: Dict[str, List[Dict[str, Any]]]):
        path = tmp_path / f"northwind_{len(engines)}.db"
        engine = create_async_engine(f"sqlite+aiosqlite:///{path}")
        engines.append(engine)
        async with engine.begin() as conn:
            await conn.run_sync(load_northwind, data)
        return engine

    yield build

    for engine in engines:
        await engine.dispose()


@pytest.fixture
async def northwind_engine(engine_factory):
    """Engine over the standard sample dataset"""
    return await engine_factory(NORTHWIND_DATA)


@pytest.fixture
def runner(northwind_engine) -> ReportRunner:
    """Runner with the default catalog over the sample dataset"""
    return ReportRunner(northwind_engine)


@pytest.fixture
def northwind_db_url(tmp_path) -> str:
    """Async URL of a sample database seeded synchronously, for CLI tests"""
    path = tmp_path / "northwind_cli.db"
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        load_northwind(conn, NORTHWIND_DATA)
    engine.dispose()
    return f"sqlite+aiosqlite:///{path}"
