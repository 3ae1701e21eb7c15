"""
Module: database
Purpose: Engine, session factory and the FastAPI session dependency
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from portal.core.config import settings
from portal.db.base import Base

logger = logging.getLogger(__name__)


def is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


def _engine_options(url: str) -> Dict[str, Any]:
    if is_memory_sqlite(url):
        # A single shared connection keeps an in-memory database alive between sessions
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    if make_url(url).get_backend_name() == "sqlite":
        # File databases get a connection per checkout so concurrent requests do not share one
        return {"connect_args": {"check_same_thread": False}}
    return {
        "poolclass": QueuePool,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,
        "echo": settings.DEBUG and not settings.is_production,
    }


class DatabaseManager:
    """Owns the engine and hands out sessions."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = str(database_url or settings.DATABASE_URL)
        self.engine: Engine = create_engine(self.database_url, **_engine_options(self.database_url))
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        # Services return ORM rows after committing, so keep them loaded
        self.SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        logger.info(f"Database engine configured ({self.engine.dialect.name})")

    def get_session(self) -> Session:
        return self.SessionLocal()

    @contextmanager
    def get_session_context(self) -> Generator[Session, None, None]:
        """
        Session for scripts and startup code: commits on success, rolls back
        on any error, always closes.
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        import portal.db.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def drop_tables(self) -> None:
        if settings.is_production:
            raise RuntimeError("Refusing to drop tables in production")

        import portal.db.models  # noqa: F401

        Base.metadata.drop_all(bind=self.engine)
        logger.warning("All database tables dropped")

    def check_connection(self) -> bool:
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Database connection check failed: {e}")
            return False
        return True


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


db_manager = DatabaseManager()


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency. Services commit their own unit of work; this only
    makes sure the session is released.
    """
    session = db_manager.get_session()
    try:
        yield session
    finally:
        session.close()


def check_database_health() -> Dict[str, Any]:
    healthy = db_manager.check_connection()
    return {
        "database": {
            "status": "healthy" if healthy else "unhealthy",
            "dialect": db_manager.engine.dialect.name,
            "url": db_manager.engine.url.render_as_string(hide_password=True),
        }
    }
