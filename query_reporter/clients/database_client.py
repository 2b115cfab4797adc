"""SQLite client for running scalar report queries."""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Union

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Raised when the database cannot be opened."""


class NoResultsError(Exception):
    """Raised when a query returns no rows."""

    def __init__(self, message: str = "No results"):
        super().__init__(message)


class DatabaseClient:
    """Read-only handle on the reporting database.

    A single connection is shared by every job's execution cycle, so it is
    opened with ``check_same_thread=False`` and each statement holds a lock
    while it runs and fetches.
    """

    def __init__(self, db_path: Union[str, Path]):
        """Open the database.

        Args:
            db_path: Path to the SQLite database file

        Raises:
            DatabaseError: If the file is missing or cannot be opened
        """
        self.db_path = Path(db_path)
        self._lock = threading.Lock()

        if not self.db_path.is_file():
            raise DatabaseError(f"Database file not found: {self.db_path}")

        uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
        try:
            self._conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot open database {self.db_path}: {e}") from e

        logger.info(f"Opened database {self.db_path} (read-only)")

    def fetch_scalar(self, query: str) -> Any:
        """Run a query and return the first column of its first row.

        Args:
            query: SQL statement returning a single value

        Returns:
            The value as returned by sqlite3 (None, int, float, str or bytes)

        Raises:
            NoResultsError: If the query returns no rows
            sqlite3.Error: On SQL or connection errors
        """
        with self._lock:
            cursor = self._conn.execute(query)
            try:
                row = cursor.fetchone()
            finally:
                cursor.close()

        if row is None:
            raise NoResultsError()

        return row[0]

    def test_connection(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            return self.fetch_scalar("SELECT 1") == 1
        except (sqlite3.Error, NoResultsError) as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._conn.close()
        logger.debug(f"Closed database {self.db_path}")
