"""Database engine creation and initialization."""

import logging
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from services.storage.models import Base

logger = logging.getLogger(__name__)

# Module-level engine for the running application
_engine: Engine | None = None


def _is_memory_url(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


def create_db_engine(url: str) -> Engine:
    """Create a SQLAlchemy engine.

    File-backed SQLite databases use WAL journaling so pollers can read
    while an evaluation job is writing, and every session opens an explicit
    transaction so multi-statement reads see one snapshot. In-memory
    databases share a single connection so every session sees the same data.
    """
    if url.startswith("sqlite"):
        if _is_memory_url(url):
            return create_engine(
                "sqlite://",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )

        db_path = Path(url.removeprefix("sqlite:///"))
        db_path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(url, echo=False, connect_args={"check_same_thread": False})

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, _record):
            # pysqlite would otherwise defer BEGIN until the first write
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _begin_snapshot(conn):
            conn.exec_driver_sql("BEGIN")

        return engine

    return create_engine(url, echo=False)


def get_engine(url: str | None = None) -> Engine:
    """Get or create the application engine."""
    global _engine
    if _engine is None:
        if url is None:
            from config import settings
            url = settings.database_url
        _engine = create_db_engine(url)
        logger.info("Database engine created for %s", url)
    return _engine


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(engine)


def reset_engine() -> None:
    """Dispose the application engine. Useful for testing."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
