"""Utility functions for configuration, logging, and common operations."""

import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_DATA_DIR = "../data"
DEFAULT_DATABASE_NAME = "db.sqlite"


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent.parent


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the main configuration file.

    Args:
        config_path: Optional path to config file. If not provided,
                     uses default config/config.yaml when it exists

    Returns:
        Configuration dictionary (empty if the default file is absent)

    Raises:
        FileNotFoundError: If an explicitly given config file does not exist
    """
    if config_path is None:
        config_path = get_project_root() / "config" / "config.yaml"
        if not config_path.exists():
            return {}
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_credentials(credentials_path: Optional[str] = None) -> Dict[str, Any]:
    """Load reporting and notification credentials.

    Args:
        credentials_path: Optional path to credentials file. If not provided,
                          uses default config/credentials.yaml

    Returns:
        Credentials dictionary with "reporting" and "slack" sections

    Raises:
        FileNotFoundError: If an explicitly given credentials file does not exist
    """
    if credentials_path is None:
        path = get_project_root() / "config" / "credentials.yaml"
        creds: Dict[str, Any] = {}
        if path.exists():
            with open(path, "r", encoding="utf-8") as f:
                creds = yaml.safe_load(f) or {}
    else:
        path = Path(credentials_path)
        if not path.exists():
            raise FileNotFoundError(
                f"Credentials file not found: {path}\n"
                f"Copy config/credentials.template.yaml and fill in your credentials."
            )
        with open(path, "r", encoding="utf-8") as f:
            creds = yaml.safe_load(f) or {}

    if "reporting" not in creds:
        creds["reporting"] = {}
    if "slack" not in creds:
        creds["slack"] = {}

    return creds


def get_data_dir(override: Optional[str] = None) -> Path:
    """Resolve the directory holding the database file.

    Args:
        override: Explicit directory (e.g. from the command line)

    Returns:
        The override, else $DATA_DIR, else ../data
    """
    if override:
        return Path(override)
    return Path(os.environ.get("DATA_DIR", DEFAULT_DATA_DIR))


def get_database_path(config: Optional[Dict[str, Any]] = None, data_dir: Optional[str] = None) -> Path:
    """Build the database file path from the data directory and filename.

    Args:
        config: Application configuration (uses database.filename if set)
        data_dir: Optional data directory override

    Returns:
        Path to the SQLite database file
    """
    filename = ((config or {}).get("database") or {}).get("filename", DEFAULT_DATABASE_NAME)
    return get_data_dir(data_dir) / filename


def get_endpoint_url(config: Dict[str, Any]) -> Optional[str]:
    """Get the reporting endpoint URL; $REPORT_ENDPOINT_URL wins over config."""
    return os.environ.get("REPORT_ENDPOINT_URL") or config.get("reporting", {}).get("endpoint_url")


def setup_logging(
    level: str = "INFO",
    log_format: Optional[str] = None,
    log_file: Optional[str] = None
) -> logging.Logger:
    """Set up logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Optional custom log format
        log_file: Optional log file path

    Returns:
        Configured package logger
    """
    if log_format is None:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=log_format,
        handlers=[]
    )

    logger = logging.getLogger("query_reporter")
    logger.setLevel(getattr(logging, level.upper()))

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(console_handler)

    # File handler (optional)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(log_format))
        logger.addHandler(file_handler)

    return logger
