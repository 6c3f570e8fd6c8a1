"""Database engines and session management."""

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from notesync.config import settings
from notesync.models import document  # noqa: F401  registers the tables


def _configure_sqlite(dbapi_conn, _connection_record):
    """Let concurrent writers wait on a locked SQLite file instead of failing."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA busy_timeout = 5000")
    cursor.close()


def make_engine(url: str, **kwargs) -> Engine:
    """
    Create an engine for the document backend or the local cache.

    Args:
        url: SQLAlchemy database URL
        **kwargs: Extra create_engine arguments (e.g. poolclass for tests)

    Returns:
        Configured engine
    """
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(
        url,
        echo=settings.sql_echo,
        connect_args=connect_args,
        **kwargs,
    )
    if url.startswith("sqlite"):
        event.listen(engine, "connect", _configure_sqlite)
    return engine


# Created lazily: nothing connects until first use
engine = make_engine(settings.database_url)
cache_engine = make_engine(settings.local_cache_url)


def create_db_and_tables(target: Engine | None = None):
    """Create all database tables."""
    SQLModel.metadata.create_all(target or engine)

