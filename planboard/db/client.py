import logging
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from planboard.core.config import settings
from planboard.db.base import Base


logger = logging.getLogger(__name__)

# Create the SQLAlchemy async engine
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    poolclass=NullPool if settings.ENVIRONMENT == "development" else None,
    pool_pre_ping=True,
)

# Create async session maker
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get database session.
    One session (and one transaction) per request; anything not committed by
    the service layer is rolled back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_tables(bind: Optional[AsyncEngine] = None) -> None:
    """
    Create all database tables.
    :param bind: Engine to use; the application engine when None.
    """
    logger.info("Creating database tables...")
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created successfully")


async def drop_tables(bind: Optional[AsyncEngine] = None) -> None:
    """
    Drop all database tables.
    :param bind: Engine to use; the application engine when None.
    """
    logger.info("Dropping database tables...")
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("Database tables dropped successfully")


async def check_database_connection() -> bool:
    """
    Check if database connection is working.

    :return: True if connection is successful, False otherwise.
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        return False
