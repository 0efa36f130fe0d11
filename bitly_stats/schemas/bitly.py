"""Pydantic schemas for the bitly v4 API responses.

Only the fields the sync job reads are declared; everything else in the
payloads is ignored.
"""

from pydantic import BaseModel, ConfigDict, Field


class BitlyModel(BaseModel):
    """Base for API payloads, tolerant of extra fields."""

    model_config = ConfigDict(extra="ignore")


class Group(BitlyModel):
    """An account-scoping group."""

    guid: str = Field(description="Group identifier")


class GroupsResponse(BitlyModel):
    """Response of ``GET /groups``."""

    groups: list[Group]


class Bitlink(BitlyModel):
    """A shortened link and its target."""

    id: str = Field(description="Bitlink id, e.g. 'bit.ly/abc123' (may contain '/')")
    link: str = Field(description="Short URL")
    long_url: str = Field(description="Target URL the short link redirects to")


class BitlinksResponse(BitlyModel):
    """Response of ``GET /groups/{guid}/bitlinks`` (first page only)."""

    links: list[Bitlink]


class LinkClick(BitlyModel):
    """Clicks on a bitlink for one day bucket."""

    date: str = Field(description="Start of the day bucket (ISO-8601)")
    clicks: int = Field(ge=0, description="Number of clicks in the bucket")


class LinkClicksResponse(BitlyModel):
    """Response of ``GET /bitlinks/{id}/clicks?unit=day``."""

    link_clicks: list[LinkClick]
    unit: str | None = None
    units: int | None = None
