"""Post model - published posts on the brand's own profiles with lifetime metrics."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class Post(Base):
    """Brand post with engagement counts and its EMV at the last refresh."""

    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)  # upstream guid
    profile_id: Mapped[int] = mapped_column(Integer, nullable=False)
    platform: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, default="")
    permalink: Mapped[str] = mapped_column(String(1000), default="")

    # Engagement metrics
    impressions: Mapped[int] = mapped_column(Integer, default=0)
    engagements: Mapped[int] = mapped_column(Integer, default=0)
    video_views: Mapped[int] = mapped_column(Integer, default=0)
    reactions: Mapped[int] = mapped_column(Integer, default=0)
    comments: Mapped[int] = mapped_column(Integer, default=0)
    shares: Mapped[int] = mapped_column(Integer, default=0)
    saves: Mapped[int] = mapped_column(Integer, default=0)
    clicks: Mapped[int] = mapped_column(Integer, default=0)
    emv: Mapped[float] = mapped_column(Float, default=0.0)

    cached_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Post {self.id}: {self.platform} - {self.engagements} engagements>"
