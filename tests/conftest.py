"""Shared fixtures: a small registration database on disk."""

import logging
import sqlite3

import pytest

from query_reporter.clients.database_client import DatabaseClient


REGISTRATIONS = [
    (70.0, "2022-12-12 08:00:00"),
    (80.0, "2022-12-17 09:30:00"),
    (90.0, "2022-12-17 18:00:00"),
    (60.0, "2022-12-20 10:00:00"),
]


@pytest.fixture
def db_path(tmp_path):
    """Create db.sqlite with a populated registration table."""
    path = tmp_path / "db.sqlite"
    conn = sqlite3.connect(str(path))
    conn.execute(
        "CREATE TABLE registration (id INTEGER PRIMARY KEY, weight REAL, timestamp TEXT)"
    )
    conn.executemany(
        "INSERT INTO registration (weight, timestamp) VALUES (?, ?)",
        REGISTRATIONS,
    )
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def database(db_path):
    """Open a read-only client on the test database."""
    client = DatabaseClient(db_path)
    yield client
    client.close()


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Drop handlers that setup_logging() (e.g. via run.main) adds during a test."""
    logger = logging.getLogger("query_reporter")
    handlers = list(logger.handlers)
    level = logger.level
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
