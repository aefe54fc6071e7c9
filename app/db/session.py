"""
Async database session management with connection pooling
"""

import os
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.config import settings
from app.db.base import Base

# Pool configuration with environment variable overrides
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", settings.db_pool_size))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", settings.db_max_overflow))


def build_engine(database_url: str) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite URLs (used by tests and local demos) get a static pool since
    they do not accept pool sizing arguments.
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=settings.debug,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(
        database_url,
        echo=settings.debug,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_timeout=30,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# Create async engine with optimized pooling
async_engine = build_engine(settings.database_url)

# Create async session factory
AsyncSessionLocal = build_session_factory(async_engine)


async def create_tables(engine: AsyncEngine = None) -> None:
    """Create all tables that do not exist yet."""
    # Import models so they register on the metadata
    import app.models  # noqa: F401

    engine = engine or async_engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

