"""Database engine and session management.

Usage:
    from src.data.database import get_db_session, init_database

    init_database()
    with get_db_session() as session:
        ...
"""

from contextlib import contextmanager
from typing import Iterator

from loguru import logger
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from src.config.base import get_config
from src.data.models import Base
from src.journal import models as journal_models  # noqa: F401  registers import tables

_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINTs work on pysqlite.

    Fill inserts run inside nested transactions to absorb unique
    violations; the stock pysqlite driver defers BEGIN and breaks them.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url`` with driver-specific setup."""
    engine = create_engine(database_url, future=True)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)
    return engine


def init_database(database_url: str | None = None) -> Engine:
    """Create the global engine and all tables.

    Args:
        database_url: Connection URL. Defaults to the configured URL.

    Returns:
        The initialized engine.
    """
    global _engine, _session_factory

    url = database_url or get_config().database_url
    _engine = create_db_engine(url)
    Base.metadata.create_all(_engine)
    _session_factory = sessionmaker(bind=_engine)
    logger.debug(f"Database initialized: {_engine.url!r}")
    return _engine


@contextmanager
def get_db_session() -> Iterator[Session]:
    """Yield a session, committing on success and rolling back on error."""
    if _session_factory is None:
        init_database()

    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def close_database() -> None:
    """Dispose of the global engine."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
