"""Record store for appending link statistics to the SQLite stats file."""

import asyncio
from pathlib import Path
from typing import Protocol, TextIO

import structlog
from sqlalchemy import insert
from sqlalchemy.dialects import sqlite
from sqlalchemy.exc import SQLAlchemyError

from bitly_stats.core.database import create_engine, create_session_factory
from bitly_stats.core.exceptions import StorageError
from bitly_stats.models import LinkStats
from bitly_stats.schemas import StatsRecord

logger = structlog.get_logger()


class RecordSink(Protocol):
    """Anything the reconciler can hand qualifying records to."""

    async def insert(self, record: StatsRecord) -> None: ...


class RecordStore:
    """Append-only store for StatsRecords.

    Each insert runs in its own transaction. Inserts are serialized with a
    lock, so one store can be shared by several reconciler workers.

    Usage:
        store = RecordStore.open("/tmp/bitly-stats.db")
        await store.insert(record)
        await store.close()
    """

    def __init__(self, path: str | Path, echo: bool | None = None):
        """Initialize the store.

        Args:
            path: Path of an existing SQLite stats file.
            echo: Log SQL statements. Defaults to the debug setting.
        """
        self.path = Path(path)
        self._engine = create_engine(self.path, echo=echo)
        self._session_factory = create_session_factory(self._engine)
        self._lock = asyncio.Lock()
        self._records_stored = 0

    @classmethod
    def open(cls, path: str | Path, echo: bool | None = None) -> "RecordStore":
        """Open a store on an existing file.

        Raises:
            StorageError: If the file does not exist.
        """
        if not Path(path).is_file():
            raise StorageError(f"file {path} does not exist")
        return cls(path, echo=echo)

    async def insert(self, record: StatsRecord) -> None:
        """Insert one record in a single-row transaction.

        Raises:
            StorageError: If the insert fails.
        """
        async with self._lock:
            async with self._session_factory() as session:
                try:
                    await session.execute(insert(LinkStats).values(**record.model_dump()))
                    await session.commit()
                except SQLAlchemyError as e:
                    await session.rollback()
                    logger.error(
                        "Failed to insert link stats",
                        link=record.link,
                        date=record.date,
                        error=str(e),
                    )
                    raise StorageError(
                        f"error while inserting data into database: {e}"
                    ) from e

            self._records_stored += 1
            logger.debug("Link stats stored", link=record.link, date=record.date)

    async def close(self) -> None:
        """Close all handles to the database."""
        await self._engine.dispose()
        logger.info(
            "Record store closed",
            path=str(self.path),
            records_stored=self._records_stored,
        )

    @property
    def stats(self) -> dict:
        """Get storage statistics."""
        return {
            "path": str(self.path),
            "records_stored": self._records_stored,
        }


class SqlStatementWriter:
    """Write records as SQL insert statements instead of storing them.

    Used for dry runs: the statements can be reviewed, or replayed against the
    stats file by hand.
    """

    def __init__(self, stream: TextIO):
        self._stream = stream
        self._dialect = sqlite.dialect()

    def render(self, record: StatsRecord) -> str:
        """Render the insert statement for a record."""
        statement = insert(LinkStats).values(**record.model_dump())
        compiled = statement.compile(
            dialect=self._dialect,
            compile_kwargs={"literal_binds": True},
        )
        return f"{compiled};"

    async def insert(self, record: StatsRecord) -> None:
        self._stream.write(self.render(record) + "\n")
