"""
Database engine and sessions.

Request handlers get a session through the ``get_db`` dependency; Celery
tasks and scripts use ``session_scope()``.
"""

from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool, StaticPool

from .config import settings


Base = declarative_base()


# =============================================================================
# Engine
# =============================================================================

def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # One shared connection, so an in-memory database outlives each session
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {
        "poolclass": QueuePool,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": settings.db_pool_recycle,
        "pool_timeout": settings.db_pool_timeout,
    }


engine = create_engine(settings.database_url, echo=settings.debug, **_engine_options(settings.database_url))

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _configure_postgres_connection(dbapi_connection, connection_record):
    """Pin new PostgreSQL connections to UTC with a 30s statement timeout."""
    if engine.dialect.name != "postgresql":
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("SET timezone='UTC'")
    cursor.execute("SET statement_timeout = '30s'")
    cursor.close()


# =============================================================================
# Sessions
# =============================================================================

def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, closed afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Session for work outside a request.

    Rolls back if the block raises; committing is left to the caller.
    """
    db = SessionLocal()
    try:
        yield db
    except BaseException:
        db.rollback()
        raise
    finally:
        db.close()


# =============================================================================
# Utilities
# =============================================================================

def init_db() -> None:
    """Create every table on ``Base.metadata`` (development and tests only)."""
    from .. import models  # noqa: F401  registers the tables

    Base.metadata.create_all(bind=engine)


def check_db_connection() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False
