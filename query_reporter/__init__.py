"""Scheduled SQL query reporter."""

__version__ = "1.0.0"
