import logging
from enum import Enum as PyEnum

from sqlalchemy import BigInteger, Integer, Enum as SQLEnum
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from core.config import settings

logger = logging.getLogger(__name__)

db_engine = create_async_engine(settings.database_url, echo=settings.database_echo)


# Create async session maker to be used throughout the application
AsyncSessionLocal = async_sessionmaker(
    db_engine, class_=AsyncSession, expire_on_commit=False
)


# Base class for declarative models
class Base(DeclarativeBase):
    pass


# Dependency to get DB session
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


async def init_db():
    """Create tables for every imported model."""
    # Import models so they register on Base.metadata
    import database.models  # noqa: F401

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema initialized")


# Function to close database connections
async def close_db():
    """Close database engine and connections."""
    await db_engine.dispose()


# BIGINT primary keys only autoincrement on SQLite when declared as INTEGER
IdType = BigInteger().with_variant(Integer, "sqlite")


def enum_column(enum_cls: type[PyEnum], length: int = 30) -> SQLEnum:
    """String-backed enum column that stores member values, not names."""
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
    )
