"""Stats file SQLAlchemy models."""

from bitly_stats.core.database import Base
from bitly_stats.models.link_stats import LinkStats

__all__ = ["Base", "LinkStats"]
