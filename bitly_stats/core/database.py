"""Database configuration with SQLAlchemy 2.0 async support for the stats file."""

from pathlib import Path

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from bitly_stats.core.config import get_settings

settings = get_settings()

# Naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models in the stats file."""

    metadata = MetaData(naming_convention=convention)


def database_url(path: str | Path) -> str:
    """Build the aiosqlite URL for a database file."""
    return f"sqlite+aiosqlite:///{Path(path)}"


def create_engine(path: str | Path, echo: bool | None = None) -> AsyncEngine:
    """Create an async engine for a SQLite file.

    The file is a single local copy downloaded for the duration of a run, so
    there is nothing to pool. SQL is echoed when `echo` is set, or in debug
    mode when it is not given.
    """
    return create_async_engine(
        database_url(path),
        echo=settings.debug if echo is None else echo,
        poolclass=NullPool,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory for creating database sessions bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def init_db(path: str | Path) -> None:
    """Create the stats tables in a new database file.

    Note: the sync job never changes the schema of an existing file.
    This is for bootstrapping a fresh file and for tests.
    """
    # Register models on the metadata
    import bitly_stats.models  # noqa: F401

    engine = create_engine(path)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()
