"""
Northwind Reports

Analytical report catalog and runner over the Northwind sales database.
"""

__version__ = "1.0.0"
