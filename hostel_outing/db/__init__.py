"""
Database engine, sessions and schema setup.
"""

from hostel_outing.db.init_db import drop_db, init_db
from hostel_outing.db.session import (
    SessionLocal,
    create_db_engine,
    create_session_factory,
    engine,
    get_db,
    session_scope,
)

__all__ = [
    "SessionLocal",
    "create_db_engine",
    "create_session_factory",
    "drop_db",
    "engine",
    "get_db",
    "init_db",
    "session_scope",
]
