"""
Core utilities shared across the application.
"""

from .database import PostgresConnection
from .logger import setup_logging
from .schema import ensure_schema

__all__ = ["PostgresConnection", "setup_logging", "ensure_schema"]
