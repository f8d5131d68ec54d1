"""
Database package for the Elpris service.
Contains the preferences store.
"""

from .service import db_service, DatabaseService

__all__ = [
    "db_service",
    "DatabaseService",
]
