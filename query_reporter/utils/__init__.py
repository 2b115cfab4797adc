"""Utility functions."""

from .helpers import get_database_path, load_config, load_credentials, setup_logging

__all__ = ["get_database_path", "load_config", "load_credentials", "setup_logging"]
