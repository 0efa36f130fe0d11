"""Sync trigger endpoint for the scheduler."""

import asyncio
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from bitly_stats.core.exceptions import StatsSyncError
from bitly_stats.core.observability import bind_request_id, get_request_id
from bitly_stats.schemas import SyncResult
from bitly_stats.services.sync_job import SyncJob

logger = structlog.get_logger()

router = APIRouter(prefix="/runs", tags=["runs"])

# One run at a time per process
_run_lock = asyncio.Lock()


def is_run_in_progress() -> bool:
    """Whether a sync run started over HTTP has not finished yet."""
    return _run_lock.locked()


class ScheduledEvent(BaseModel):
    """Payload sent by the scheduler. Only the id is used, for logging."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(default=None, description="Opaque request identifier")


def get_sync_job() -> SyncJob:
    """Dependency that provides the sync job."""
    return SyncJob()


@router.post("", response_model=SyncResult)
async def trigger_run(
    job: Annotated[SyncJob, Depends(get_sync_job)],
    event: ScheduledEvent | None = None,
) -> SyncResult:
    """Run the stats sync once and return its summary.

    Returns 409 if a run is already in progress and 500 with the failing
    stage if the run fails.
    """
    if _run_lock.locked():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A sync run is already in progress",
        )

    request_id = bind_request_id((event.id if event else None) or get_request_id())

    async with _run_lock:
        try:
            return await job.run(request_id=request_id)
        except StatsSyncError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={"stage": e.stage, "error": str(e)},
            ) from e
