"""Link statistics SQLAlchemy model."""

from sqlalchemy import Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from bitly_stats.core.database import Base


class LinkStats(Base):
    """Daily click count for one bitlink, with its target URL decomposed.

    The table is append-only and has no primary key in the database. The
    mapper identifies rows loosely by host, path, date and the utm fields.
    """

    __tablename__ = "links"

    host: Mapped[str] = mapped_column(Text, comment="Host of the long URL")
    path: Mapped[str] = mapped_column(Text, comment="Path of the long URL")
    date: Mapped[str] = mapped_column(
        Text,
        comment="Day bucket as reported by the stats API (ISO-8601)",
    )
    link: Mapped[str] = mapped_column(Text, comment="Short URL")
    url: Mapped[str] = mapped_column(Text, comment="Long URL")
    clicks: Mapped[int] = mapped_column(Integer, comment="Clicks on that day")
    utm_source: Mapped[str] = mapped_column(Text, default="")
    utm_medium: Mapped[str] = mapped_column(Text, default="")
    utm_campaign: Mapped[str] = mapped_column(Text, default="")
    utm_term: Mapped[str] = mapped_column(Text, default="")
    utm_content: Mapped[str] = mapped_column(Text, default="")

    __mapper_args__ = {
        "primary_key": [
            host,
            path,
            date,
            utm_source,
            utm_medium,
            utm_campaign,
            utm_term,
            utm_content,
        ],
    }

    def __repr__(self) -> str:
        return f"<LinkStats {self.link} date={self.date} clicks={self.clicks}>"
