"""
Database session configuration.

This module handles database engine creation and session management
using SQLAlchemy with async support (PostgreSQL in deployment, SQLite locally).
"""

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from gym_ledger.app.core.config import settings


def _engine_options(database_url: str) -> dict:
    """Pool sizing only applies to server databases."""
    options = {"echo": settings.db_echo, "future": True}
    if not database_url.startswith("sqlite"):
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
    return options


def use_immediate_transactions(async_engine) -> None:
    """
    Open every SQLite transaction with BEGIN IMMEDIATE.

    SQLite ignores SELECT ... FOR UPDATE and the driver defers BEGIN until the
    first write, so two transactions could both read a payment's refund total
    before either writes. Taking the write lock at BEGIN serializes them.
    """
    sync_engine = async_engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def disable_driver_transactions(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# Create async engine
engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))
if settings.database_url.startswith("sqlite"):
    use_immediate_transactions(engine)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Create declarative base for models
Base = declarative_base()


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if "sqlite" in str(type(dbapi_conn)).lower():
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


async def get_db():
    """
    FastAPI dependency for database sessions.

    Yields an async database session and ensures it's properly closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
