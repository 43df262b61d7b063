"""WeeklySnapshot model - archived per-platform weekly totals."""

from uuid import uuid4

from sqlalchemy import Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class WeeklySnapshot(Base):
    """Pre-aggregated Monday-Sunday metrics for one platform, or "total".

    Keyed by (week_start, platform); rebuilt from daily metrics and upserted.
    """

    __tablename__ = "weekly_snapshots"
    __table_args__ = (
        UniqueConstraint("week_start", "platform", name="uix_weekly_snapshots_week_platform"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    week_start: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    week_end: Mapped[str] = mapped_column(String(10), nullable=False)
    platform: Mapped[str] = mapped_column(String(50), nullable=False)

    views: Mapped[int] = mapped_column(Integer, default=0)
    impressions: Mapped[int] = mapped_column(Integer, default=0)
    engagements: Mapped[int] = mapped_column(Integer, default=0)
    engagement_rate: Mapped[float] = mapped_column(Float, default=0.0)
    posts_count: Mapped[int] = mapped_column(Integer, default=0)
    followers_start: Mapped[int] = mapped_column(Integer, default=0)
    followers_end: Mapped[int] = mapped_column(Integer, default=0)
    follower_growth: Mapped[int] = mapped_column(Integer, default=0)

    # EMV split
    emv_total: Mapped[float] = mapped_column(Float, default=0.0)
    emv_views: Mapped[float] = mapped_column(Float, default=0.0)
    emv_likes: Mapped[float] = mapped_column(Float, default=0.0)
    emv_comments: Mapped[float] = mapped_column(Float, default=0.0)
    emv_shares: Mapped[float] = mapped_column(Float, default=0.0)
    emv_other: Mapped[float] = mapped_column(Float, default=0.0)

    def __repr__(self) -> str:
        return f"<WeeklySnapshot {self.week_start} {self.platform}: {self.engagements} engagements>"
