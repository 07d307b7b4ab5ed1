"""Database configuration and session management for SQLite.

The SQLite database is the primary Local Store: a single key/value table
holding each collection as a JSON document. It is configured the same way
for the web app and the background scheduler jobs.

SQLite Configuration Choices:
    - **WAL (Write-Ahead Logging)**: Readers are not blocked while the
      store writes, and a crash mid-write rolls back to the last committed
      transaction instead of corrupting the file.

    - **check_same_thread=False**: Scheduler jobs run on a worker thread
      while request handlers use the event loop thread, so a connection
      may be used across threads.
"""

from sqlalchemy import event as sa_event
from sqlmodel import SQLModel, create_engine

from tripsync.core.config import settings

connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    echo=settings.debug,  # Log SQL statements when DEBUG=true
)


@sa_event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite pragmas on each new connection.

    These settings are connection-level, not database-level, so they must
    be set each time a new connection is established from the pool.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    # Full fsync on commit so acknowledged writes survive a power loss.
    cursor.execute("PRAGMA synchronous=FULL")
    cursor.close()


def create_db_and_tables():
    """Create all database tables."""
    # Import so the table is registered on SQLModel.metadata
    from tripsync.models.kv import KVEntry  # noqa: F401

    SQLModel.metadata.create_all(engine)
