"""
Shared pytest fixtures for the stats sync test suite.

Responsibilities:
    - Provide Settings isolated from the environment and any .env file
    - Provide an in-process fake of the Bitly v4 API (httpx.MockTransport)
    - Provide an empty stats file with the links table
    - Provide an in-memory record sink for reconciler tests
"""

from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import unquote

import httpx
import pytest
import pytest_asyncio

from bitly_stats.core.config import Settings
from bitly_stats.core.database import init_db
from bitly_stats.core.exceptions import StorageError
from bitly_stats.schemas import StatsRecord

API = "/v4"

# The run clock used across tests: yesterday is 2024-01-01
NOW = datetime(2024, 1, 2, 6, 30, tzinfo=timezone.utc)
YESTERDAY = "2024-01-01"


def day_samples(*pairs: tuple[str, int]) -> list[dict]:
    """Build a link_clicks payload from (day, clicks) pairs, newest first."""
    return [{"date": f"{day}T00:00:00+0000", "clicks": clicks} for day, clicks in pairs]


def bitlink(link_id: str, long_url: str) -> dict:
    return {
        "id": link_id,
        "link": f"https://{link_id}",
        "long_url": long_url,
        "title": None,
        "archived": False,
    }


class FakeBitlyAPI:
    """In-process stand-in for the Bitly v4 API.

    ``clicks`` maps a (decoded) bitlink id to either a list of samples or a
    ready-made httpx.Response. ``overrides`` maps a request path to a
    response, taking precedence over everything else.
    """

    def __init__(
        self,
        groups: list[dict] | None = None,
        links: list[dict] | None = None,
        clicks: dict | None = None,
    ):
        self.groups = [{"guid": "Bg1"}] if groups is None else groups
        self.links = links or []
        self.clicks = clicks or {}
        self.overrides: dict[str, httpx.Response] = {}
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.raw_path.decode().split("?")[0]

        if path in self.overrides:
            return self.overrides[path]

        if path == f"{API}/groups":
            return httpx.Response(200, json={"groups": self.groups})

        if path.startswith(f"{API}/groups/") and path.endswith("/bitlinks"):
            return httpx.Response(200, json={"links": self.links, "pagination": {}})

        if path.startswith(f"{API}/bitlinks/") and path.endswith("/clicks"):
            link_id = unquote(path[len(f"{API}/bitlinks/"):-len("/clicks")])
            value = self.clicks.get(link_id)
            if isinstance(value, httpx.Response):
                return value
            if value is None:
                return httpx.Response(404, json={"message": "NOT_FOUND"})
            return httpx.Response(
                200,
                json={"link_clicks": value, "unit": "day", "units": -1},
            )

        return httpx.Response(404, json={"message": "NOT_FOUND"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def paths(self) -> list[str]:
        return [r.url.raw_path.decode() for r in self.requests]


class MemorySink:
    """Record sink that keeps inserted records in a list."""

    def __init__(self, fail_on: set[str] | None = None):
        self.records: list[StatsRecord] = []
        self._fail_on = fail_on or set()

    async def insert(self, record: StatsRecord) -> None:
        if record.link in self._fail_on:
            raise StorageError(f"cannot insert {record.link}")
        self.records.append(record)


@pytest.fixture
def settings() -> Settings:
    """Settings that do not depend on the environment."""
    return Settings(
        _env_file=None,
        aws_region="us-east-1",
        s3_bucket="test-bucket",
        temp_folder="/tmp",
        bitly_api_url="https://api-ssl.bitly.com/v4",
        link_workers=1,
        link_error_policy="abort",
    )


@pytest.fixture
def bitly_api() -> FakeBitlyAPI:
    return FakeBitlyAPI()


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest_asyncio.fixture
async def stats_db(tmp_path: Path) -> Path:
    """An empty stats file with the links table."""
    path = tmp_path / "bitly-stats.db"
    await init_db(path)
    return path
