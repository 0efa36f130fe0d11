"""Pydantic schemas for the stats API and sync results."""

from bitly_stats.schemas.bitly import (
    Bitlink,
    BitlinksResponse,
    Group,
    GroupsResponse,
    LinkClick,
    LinkClicksResponse,
)
from bitly_stats.schemas.stats import DecomposedURL, StatsRecord, SyncResult

__all__ = [
    # Bitly API
    "Bitlink",
    "BitlinksResponse",
    "Group",
    "GroupsResponse",
    "LinkClick",
    "LinkClicksResponse",
    # Sync
    "DecomposedURL",
    "StatsRecord",
    "SyncResult",
]
