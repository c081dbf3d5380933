# readiness_auth/adapters/outbound/persistence/database.py

import logging
from typing import AsyncGenerator
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from readiness_auth.adapters.configuration.config import settings
from readiness_auth.adapters.outbound.persistence.models.base_model import Base

logger = logging.getLogger(__name__)

database_url = str(settings.DATABASE_URL).replace("postgresql+psycopg2", "postgresql+asyncpg")
logger.info("Connecting to database: %s", database_url.split("@")[-1])


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # aiosqlite connections cannot be shared across event loops
        return {"poolclass": NullPool}
    return {
        "pool_size": 20,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


try:
    engine = create_async_engine(database_url, echo=False, **_engine_options(database_url))

    AsyncSessionLocal = async_sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,
    )

    logger.info("Async database connection configured successfully")

except SQLAlchemyError as e:
    logger.error("Error connecting to database: %s", e)
    raise


async def create_tables() -> None:
    """Create every table registered on Base.metadata (development and tests)."""
    # Register the models on the metadata
    from readiness_auth.adapters.outbound.persistence import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Provides an async context for database operations,
    ensuring the session is committed or rolled back and then closed.

    Yields:
        AsyncSession: SQLAlchemy async session
    """
    session = AsyncSessionLocal()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session."""
    async with get_db_context() as session:
        yield session
