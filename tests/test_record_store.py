"""Tests for the SQLite record store and the dry-run statement writer."""

import asyncio
import io

import pytest
from sqlalchemy import select

from bitly_stats.core.database import create_engine
from bitly_stats.core.exceptions import StorageError
from bitly_stats.models import LinkStats
from bitly_stats.schemas import StatsRecord
from bitly_stats.services.record_store import RecordStore, SqlStatementWriter


def make_record(**overrides) -> StatsRecord:
    values = {
        "host": "example.com",
        "path": "/foo",
        "date": "2024-01-01T00:00:00+0000",
        "link": "https://bit.ly/a",
        "url": "https://example.com/foo?utm_source=news",
        "clicks": 3,
        "utm_source": "news",
    }
    values.update(overrides)
    return StatsRecord(**values)


async def read_rows(path) -> list[dict]:
    engine = create_engine(path)
    try:
        async with engine.connect() as conn:
            result = await conn.execute(select(LinkStats.__table__))
            return [dict(row._mapping) for row in result]
    finally:
        await engine.dispose()


class TestRecordStore:
    @pytest.mark.asyncio
    async def test_insert_appends_a_row(self, stats_db):
        store = RecordStore.open(stats_db)
        await store.insert(make_record())
        await store.close()

        rows = await read_rows(stats_db)
        assert rows == [{
            "host": "example.com",
            "path": "/foo",
            "date": "2024-01-01T00:00:00+0000",
            "link": "https://bit.ly/a",
            "url": "https://example.com/foo?utm_source=news",
            "clicks": 3,
            "utm_source": "news",
            "utm_medium": "",
            "utm_campaign": "",
            "utm_term": "",
            "utm_content": "",
        }]
        assert store.stats["records_stored"] == 1

    @pytest.mark.asyncio
    async def test_duplicates_are_appended(self, stats_db):
        store = RecordStore.open(stats_db)
        await store.insert(make_record())
        await store.insert(make_record())
        await store.close()

        assert len(await read_rows(stats_db)) == 2

    @pytest.mark.asyncio
    async def test_concurrent_inserts(self, stats_db):
        store = RecordStore.open(stats_db)
        await asyncio.gather(*(
            store.insert(make_record(link=f"https://bit.ly/{i}", clicks=i))
            for i in range(20)
        ))
        await store.close()

        rows = await read_rows(stats_db)
        assert sorted(row["clicks"] for row in rows) == list(range(20))

    @pytest.mark.asyncio
    async def test_values_are_bound_not_interpolated(self, stats_db):
        record = make_record(path='/a"b', utm_campaign="it's; drop table links")
        store = RecordStore.open(stats_db)
        await store.insert(record)
        await store.close()

        rows = await read_rows(stats_db)
        assert rows[0]["path"] == '/a"b'
        assert rows[0]["utm_campaign"] == "it's; drop table links"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("echo", [True, False])
    async def test_echo_is_passed_to_engine(self, stats_db, echo):
        store = RecordStore.open(stats_db, echo=echo)

        assert store._engine.sync_engine.echo is echo
        await store.close()

    def test_missing_file(self, tmp_path):
        with pytest.raises(StorageError, match="does not exist"):
            RecordStore.open(tmp_path / "missing.db")

    @pytest.mark.asyncio
    async def test_insert_failure(self, tmp_path):
        # A valid, empty SQLite file without the links table
        path = tmp_path / "empty.db"
        path.write_bytes(b"")

        store = RecordStore.open(path)
        with pytest.raises(StorageError, match="inserting"):
            await store.insert(make_record())
        await store.close()


class TestSqlStatementWriter:
    def test_render(self):
        writer = SqlStatementWriter(io.StringIO())
        sql = writer.render(make_record())

        assert sql.startswith("INSERT INTO links")
        assert "'example.com'" in sql
        assert "'2024-01-01T00:00:00+0000'" in sql
        assert sql.endswith(";")

    @pytest.mark.asyncio
    async def test_insert_writes_one_line_per_record(self):
        stream = io.StringIO()
        writer = SqlStatementWriter(stream)
        await writer.insert(make_record())
        await writer.insert(make_record(link="https://bit.ly/b"))

        lines = stream.getvalue().splitlines()
        assert len(lines) == 2
        assert "'https://bit.ly/b'" in lines[1]
