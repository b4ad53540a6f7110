"""
FastAPI dependencies for database access.
"""
from fastapi import Request

from tubehub.database.session import Database


def get_database(request: Request) -> Database:
    """Return the database handle created at startup."""
    return request.app.state.db
