"""Async database engine and session factory.

The record store talks to the database exclusively through async sessions, so
every read and write suspends the calling coroutine instead of blocking the
event loop. SQLite (through ``aiosqlite``) is the default; any SQLAlchemy async
URL works, e.g. ``postgresql+asyncpg://`` for a hosted Postgres.

SQLite Configuration Choices:
    - **WAL (Write-Ahead Logging)**: concurrent readers while the store writes.
      Live views re-read the whole attendee set on every change event, so
      reads must not be blocked by the write that triggered them.

    - **Foreign Keys**: enabled so an appointment cannot be deleted while
      attendee records still reference it. The core deletes attendee records
      first; the constraint turns a wrong ordering into a ``StoreError``
      instead of silent orphans.
"""

from sqlalchemy import event as sa_event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from agenda.core.config import settings


def is_sqlite_url(url: str) -> bool:
    """Check whether a database URL points at SQLite."""
    return url.startswith("sqlite")


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine, applying SQLite pragmas when relevant."""
    if is_sqlite_url(url):
        kwargs.setdefault("connect_args", {"check_same_thread": False})

    engine = create_async_engine(url, echo=settings.debug, **kwargs)

    if is_sqlite_url(url):
        sa_event.listen(engine.sync_engine, "connect", set_sqlite_pragma)

    return engine


def set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite pragmas on each new connection.

    These settings are connection-level, not database-level, so they must
    be set each time a new connection is established from the pool.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the async session factory bound to an engine."""
    # expire_on_commit=False keeps returned records readable after the session closes
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url)
session_factory = build_session_factory(engine)


async def create_db_and_tables(target: AsyncEngine = engine):
    """Create all database tables."""
    # Import for side effect: registers every table on SQLModel.metadata
    import agenda.models  # noqa: F401

    async with target.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
