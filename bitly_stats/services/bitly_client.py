"""Client for the Bitly v4 API."""

import time
from typing import TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from bitly_stats.core.config import Settings, get_settings
from bitly_stats.core.exceptions import NoDataError, RemoteError
from bitly_stats.core.observability import record_bitly_request
from bitly_stats.schemas import (
    Bitlink,
    BitlinksResponse,
    GroupsResponse,
    LinkClick,
    LinkClicksResponse,
)

logger = structlog.get_logger()

ResponseT = TypeVar("ResponseT", bound=BaseModel)


def encode_link_id(link_id: str) -> str:
    """Percent-encode the slashes of a bitlink id for use in a URL path."""
    return link_id.replace("/", "%2F")


class BitlyClient:
    """Read-only client for the Bitly API.

    Every call is a single attempt: a transport error, a non-200 status or a
    body that does not match the expected schema raises RemoteError straight
    away. Nothing is retried.

    Usage:
        async with BitlyClient(token) as client:
            group_id = await client.list_group_id()
            links = await client.list_links(group_id)
            samples = await client.get_click_samples(links[0].id)
    """

    def __init__(
        self,
        token: str,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            token: Bitly generic access token, sent as a bearer token.
            settings: Settings for the API URL and timeout.
            transport: Optional httpx transport (used by tests).
        """
        settings = settings or get_settings()
        self._client = httpx.AsyncClient(
            base_url=settings.bitly_api_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=settings.http_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "BitlyClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def _get(
        self,
        endpoint: str,
        path: str,
        schema: type[ResponseT],
        params: dict | None = None,
    ) -> ResponseT:
        """GET ``path`` and decode the body into ``schema``.

        ``endpoint`` is a low-cardinality label for logs and metrics.
        """
        start_time = time.perf_counter()
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            record_bitly_request(endpoint, "error", time.perf_counter() - start_time)
            logger.warning("Bitly request failed", endpoint=endpoint, error=str(e))
            raise RemoteError(f"error while performing HTTP request: {e}") from e

        duration = time.perf_counter() - start_time
        record_bitly_request(endpoint, response.status_code, duration)
        logger.debug(
            "Bitly request completed",
            endpoint=endpoint,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )

        if response.status_code != 200:
            raise RemoteError(
                f"the HTTP request returned a non-OK response: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return schema.model_validate(response.json())
        except ValueError as e:
            # ValidationError is a ValueError, as is a JSON decode error
            kind = "unexpected" if isinstance(e, ValidationError) else "invalid JSON"
            raise RemoteError(
                f"{kind} response body from {endpoint}: {e}",
                status_code=response.status_code,
            ) from e

    async def list_group_id(self) -> str:
        """Get the guid of the account's first group.

        A free account has exactly one group.

        Raises:
            NoDataError: If the account has no groups.
            RemoteError: If the request fails.
        """
        response = await self._get("groups", "/groups", GroupsResponse)
        if not response.groups:
            raise NoDataError("no groups found")
        return response.groups[0].guid

    async def list_links(self, group_id: str) -> list[Bitlink]:
        """Get the bitlinks of a group.

        Only the first page is fetched; links beyond it are not returned.
        """
        response = await self._get(
            "bitlinks",
            f"/groups/{group_id}/bitlinks",
            BitlinksResponse,
        )
        return response.links

    async def get_click_samples(self, link_id: str) -> list[LinkClick]:
        """Get the per-day click counts of a bitlink, in service order."""
        response = await self._get(
            "clicks",
            f"/bitlinks/{encode_link_id(link_id)}/clicks",
            LinkClicksResponse,
            params={"unit": "day"},
        )
        return response.link_clicks
