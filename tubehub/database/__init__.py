"""
Database package.
Provides the async SQLAlchemy handle, session management, and ORM models.
"""
from tubehub.database.base import Base
from tubehub.database.session import Database
from tubehub.database.dependencies import get_database

__all__ = [
    "Base",
    "Database",
    "get_database",
]
