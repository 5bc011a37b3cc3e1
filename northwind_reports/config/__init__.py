"""
Northwind Reports
Configuration Module
"""
from .settings import MonthlyGrain, OutputFormat, Settings, get_settings

__all__ = ["MonthlyGrain", "OutputFormat", "Settings", "get_settings"]
