"""
Database engine, session and store management.

Provides the async SQLAlchemy engine, the session factory and the document
store used by FastAPI dependencies and jobs.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cardhunt.config import settings
from cardhunt.db.store import DocumentStore, SqlDocumentStore
from cardhunt.models.db import Base

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

_store: DocumentStore | None = None


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Usage in FastAPI:
        @app.get("/items")
        async def get_items(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise


def get_store() -> DocumentStore:
    """
    Dependency that provides the process-wide document store.

    One instance per process, so in-process transactions share its lock.
    """
    global _store
    if _store is None:
        _store = SqlDocumentStore(
            async_session_factory,
            max_attempts=settings.transaction_max_attempts,
            backoff_seconds=settings.transaction_backoff_seconds,
        )
    return _store


async def init_db() -> None:
    """
    Initialize database tables.

    Creates all tables defined in the ORM models.
    Should be called once at application startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db() -> None:
    """
    Drop all database tables.

    WARNING: Destroys all data. Use only for testing.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
