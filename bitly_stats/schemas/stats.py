"""Pydantic schemas for decomposed URLs, persisted records and run results."""

from pydantic import BaseModel, Field


class DecomposedURL(BaseModel):
    """Host, path and campaign tags extracted from a long URL."""

    host: str
    path: str
    utm_source: str = ""
    utm_medium: str = ""
    utm_campaign: str = ""
    utm_term: str = ""
    utm_content: str = ""


class StatsRecord(DecomposedURL):
    """One row of the ``links`` table."""

    date: str = Field(description="Day bucket reported by the stats API")
    link: str = Field(description="Short URL")
    url: str = Field(description="Long URL")
    clicks: int = Field(ge=0, description="Clicks on that day")


class SyncResult(BaseModel):
    """Summary of a completed run."""

    request_id: str | None = None
    yesterday: str = Field(description="Day the run collected (YYYY-MM-DD)")
    links_total: int = 0
    persisted: int = 0
    skipped: int = 0
    failed: int = 0
