"""
Database Models - Northwind Schema Mirror

Declarative models for the externally owned Northwind tables. They exist so
that report statements can be composed with SQLAlchemy Core against named
columns; the report runner never creates, alters or writes these tables.

Fact Tables:
- Order: a customer purchase event
- OrderDetail: one product line within an order

Dimension Tables:
- Product, Category, Supplier
- Employee, EmployeeTerritory, Territory, Region
"""

from datetime import date
from typing import Optional

from sqlalchemy import (
    Date,
    Float,
    ForeignKey,
    Integer,
    SmallInteger,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# DIMENSION TABLES
# =============================================================================

class Category(Base):
    """Product category"""
    __tablename__ = "categories"

    category_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True)
    category_name: Mapped[str] = mapped_column(String(15), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)


class Supplier(Base):
    """Product supplier"""
    __tablename__ = "suppliers"

    supplier_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True)
    company_name: Mapped[str] = mapped_column(String(40), nullable=False)
    contact_name: Mapped[Optional[str]] = mapped_column(String(30))
    city: Mapped[Optional[str]] = mapped_column(String(15))
    country: Mapped[Optional[str]] = mapped_column(String(15))


class Product(Base):
    """
    Product Dimension

    units_in_stock drives the low-stock report; category and supplier
    links drive category revenue and supplier variety.
    """
    __tablename__ = "products"

    product_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True)
    product_name: Mapped[str] = mapped_column(String(40), nullable=False)
    supplier_id: Mapped[Optional[int]] = mapped_column(SmallInteger, ForeignKey("suppliers.supplier_id"))
    category_id: Mapped[Optional[int]] = mapped_column(SmallInteger, ForeignKey("categories.category_id"))
    unit_price: Mapped[Optional[float]] = mapped_column(Float)
    units_in_stock: Mapped[Optional[int]] = mapped_column(SmallInteger)
    discontinued: Mapped[int] = mapped_column(Integer, default=0)


class Region(Base):
    """Sales region"""
    __tablename__ = "region"

    region_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True)
    region_description: Mapped[str] = mapped_column(String(60), nullable=False)


class Territory(Base):
    """Sales territory belonging to one region"""
    __tablename__ = "territories"

    territory_id: Mapped[str] = mapped_column(String(20), primary_key=True)
    territory_description: Mapped[str] = mapped_column(String(60), nullable=False)
    region_id: Mapped[int] = mapped_column(SmallInteger, ForeignKey("region.region_id"), nullable=False)


class Employee(Base):
    """Sales employee"""
    __tablename__ = "employees"

    employee_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True)
    last_name: Mapped[str] = mapped_column(String(20), nullable=False)
    first_name: Mapped[str] = mapped_column(String(10), nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(30))
    city: Mapped[Optional[str]] = mapped_column(String(15))
    country: Mapped[Optional[str]] = mapped_column(String(15))


class EmployeeTerritory(Base):
    """Employee to territory assignment (many-to-many)"""
    __tablename__ = "employee_territories"

    employee_id: Mapped[int] = mapped_column(
        SmallInteger, ForeignKey("employees.employee_id"), primary_key=True
    )
    territory_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("territories.territory_id"), primary_key=True
    )


# =============================================================================
# FACT TABLES
# =============================================================================

class Order(Base):
    """
    Order Fact Table

    One row per purchase. shipped_date is null for orders not yet shipped.
    """
    __tablename__ = "orders"

    order_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True)
    customer_id: Mapped[Optional[str]] = mapped_column(String(5))
    employee_id: Mapped[Optional[int]] = mapped_column(SmallInteger, ForeignKey("employees.employee_id"))
    order_date: Mapped[Optional[date]] = mapped_column(Date)
    shipped_date: Mapped[Optional[date]] = mapped_column(Date)
    ship_city: Mapped[Optional[str]] = mapped_column(String(15))
    ship_country: Mapped[Optional[str]] = mapped_column(String(15))


class OrderDetail(Base):
    """
    Order Line Fact Table

    Line revenue is unit_price * quantity * (1 - discount), discount in [0, 1].
    """
    __tablename__ = "order_details"

    order_id: Mapped[int] = mapped_column(SmallInteger, ForeignKey("orders.order_id"), primary_key=True)
    product_id: Mapped[int] = mapped_column(SmallInteger, ForeignKey("products.product_id"), primary_key=True)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False)
    quantity: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    discount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
