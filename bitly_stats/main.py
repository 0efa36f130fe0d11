"""FastAPI application entry point for the sync trigger."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI

from bitly_stats.api import runs_router
from bitly_stats.api.runs import is_run_in_progress
from bitly_stats.core.config import get_settings
from bitly_stats.core.observability import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    setup_observability,
)

settings = get_settings()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info(
        "Starting Bitly Stats Sync",
        version=settings.app_version,
        bucket=settings.s3_bucket,
        database_name=settings.database_name,
    )

    yield

    logger.info("Shutting down Bitly Stats Sync")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Scheduled sync of Bitly click statistics into the stats file",
    lifespan=lifespan,
)

# Set up observability (logging, tracing, metrics, error tracking)
setup_observability(app)

# Add request middleware (order matters: RequestID first, then logging)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestIDMiddleware)

app.include_router(runs_router)


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "bitly-stats-sync",
        "sync_running": is_run_in_progress(),
    }


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Welcome to Bitly Stats Sync", "version": settings.app_version}
