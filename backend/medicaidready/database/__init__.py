"""Database engine and session management."""

from medicaidready.database.session import (
    DatabaseNotConfigured,
    dispose_engine,
    get_engine,
    get_session_factory,
    get_db_session,
)

__all__ = [
    "DatabaseNotConfigured",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "get_db_session",
]
