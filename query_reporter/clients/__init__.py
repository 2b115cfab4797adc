"""Clients for the reporting database and endpoint."""

from .database_client import DatabaseClient, DatabaseError, NoResultsError
from .report_client import ReportClient

__all__ = ["DatabaseClient", "DatabaseError", "NoResultsError", "ReportClient"]
