"""HTTP trigger routes."""

from bitly_stats.api.runs import router as runs_router

__all__ = ["runs_router"]
