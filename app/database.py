"""
Database connection setup using async SQLAlchemy with PostgreSQL.

Provides the async engine, session factory, and a dependency
for injecting database sessions into FastAPI route handlers.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    pool_size=settings.DATABASE_POOL_SIZE,
    echo=settings.DEBUG,
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


async def get_db() -> AsyncSession:
    """FastAPI dependency that yields a database session.

    Whatever is still pending when the handler returns is committed here,
    and an exception rolls it back. Services that publish realtime events,
    drop cache keys or dispatch tasks commit their own writes first, so a
    request may span several transactions. Pricing reads are not locked:
    an order snapshots the rate it read, even if an admin changes it
    before the insert commits.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
