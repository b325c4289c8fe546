"""Database session management."""
from contextlib import contextmanager
from typing import Generator, Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from hostel_outing.core.config import settings


def create_db_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Build an engine for the configured database.

    SQLite connections get foreign keys enabled and may be shared across
    threads so background notification workers can use the same file.
    """
    url = database_url or settings.database.DATABASE_URL
    kwargs = {
        "echo": settings.database.DB_ECHO if echo is None else echo,
        "pool_pre_ping": settings.database.DB_POOL_PRE_PING,
    }
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}

    db_engine = create_engine(url, **kwargs)

    if db_engine.dialect.name == "sqlite":
        @event.listens_for(db_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return db_engine


def create_session_factory(db_engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=db_engine)


engine = create_db_engine()

# Create SessionLocal class
SessionLocal = create_session_factory(engine)


def get_db() -> Generator[Session, None, None]:
    """
    Yield a database session and close it afterwards.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.

    Commits on success, rolls back on error, always closes.
    """
    db = (factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
