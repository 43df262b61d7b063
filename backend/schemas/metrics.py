"""Row and payload shapes for the lifetime dashboard and data-quality checks."""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

PlatformId = Literal["youtube", "instagram", "tiktok", "x", "facebook"]

PLATFORM_IDS: tuple[str, ...] = ("youtube", "instagram", "tiktok", "x", "facebook")

TOTAL_PLATFORM = "total"

MetricFormat = Literal["number", "currency", "percentage"]
Direction = Literal["up", "down", "flat"]


# ============== Input rows ==============

class DailyMetricRow(BaseModel):
    """One day of profile-level metrics for a single platform."""

    date: str  # YYYY-MM-DD
    platform: str
    profile_id: int = 0
    impressions: int = 0
    engagements: int = 0
    reactions: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0
    video_views: int = 0
    clicks: int = 0
    followers: int = 0
    follower_growth: int = 0
    posts_published: int = 0


class PostMetrics(BaseModel):
    """A single published post and its lifetime engagement counts."""

    id: str
    platform: str
    profile_id: int = 0
    created_at: datetime
    content: str = ""
    permalink: str = ""
    impressions: int = 0
    engagements: int = 0
    video_views: int = 0
    reactions: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0
    clicks: int = 0
    emv: float = 0.0

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class TalentPost(PostMetrics):
    """A post from a talent member's personal account."""

    talent_id: str
    show_ids: list[str] = Field(default_factory=list)
    has_brand_hashtag: bool = False


class WeeklySnapshotRow(BaseModel):
    """Pre-aggregated metrics for one platform (or "total") over one week."""

    week_start: str
    week_end: str
    platform: str
    views: int = 0
    impressions: int = 0
    engagements: int = 0
    engagement_rate: float = 0.0
    posts_count: int = 0
    followers_start: int = 0
    followers_end: int = 0
    follower_growth: int = 0
    emv_total: float = 0.0
    emv_views: float = 0.0
    emv_likes: float = 0.0
    emv_comments: float = 0.0
    emv_shares: float = 0.0
    emv_other: float = 0.0


# ============== EMV ==============

class EmvBreakdown(BaseModel):
    views: float = 0.0
    likes: float = 0.0
    comments: float = 0.0
    shares: float = 0.0
    other: float = 0.0

    @property
    def total(self) -> float:
        return self.views + self.likes + self.comments + self.shares + self.other


# ============== Lifetime dashboard ==============

class AggregateMetrics(BaseModel):
    total_views: int = 0
    total_impressions: int = 0
    total_engagements: int = 0
    engagement_rate: float = 0.0
    total_posts: int = 0
    total_followers: int = 0
    emv: float = 0.0


class PlatformMetrics(AggregateMetrics):
    platform: str
    profile_name: str
    profile_handle: str
    available: bool
    top_posts: list[PostMetrics] = Field(default_factory=list)


class SparklinePoint(BaseModel):
    date: str
    value: float


class GrowthIndicator(BaseModel):
    value: float
    percentage: float
    direction: Direction


class HeroCardData(BaseModel):
    label: str
    key: str
    value: float
    format: MetricFormat
    sparkline: list[SparklinePoint]
    growth: GrowthIndicator
    currency_symbol: str | None = None


class DonutSegment(BaseModel):
    platform: str
    name: str
    value: int
    color: str
    percentage: float


class GrowthLinePoint(BaseModel):
    """Latest follower count per platform for one calendar month."""

    month: str  # YYYY-MM
    total: int = 0
    youtube: int = 0
    instagram: int = 0
    tiktok: int = 0
    x: int = 0
    facebook: int = 0


class HeatmapDay(BaseModel):
    date: str
    count: int
    day_of_week: int  # 0 = Sunday
    week_index: int


class EmvBarSegment(BaseModel):
    platform: str
    name: str
    views: float
    likes: float
    comments: float
    shares: float
    other: float
    total: float


# ============== Data quality ==============

class AnomalyFlag(BaseModel):
    date: str
    platform: str
    metric: str
    value: float
    rolling_mean: float
    rolling_std_dev: float
    deviations: float
    direction: Literal["spike", "drop"]


class DiscrepancyWarning(BaseModel):
    metric: str
    aggregate_value: float
    summed_value: float
    deviation_percent: float


class ZeroValueAlert(BaseModel):
    platform: str
    metric: str
    message: str


class DataQualityStatus(BaseModel):
    last_updated: datetime | None
    freshness_level: Literal["fresh", "amber", "red"]
    anomalies: list[AnomalyFlag]
    discrepancies: list[DiscrepancyWarning]
    zero_value_alerts: list[ZeroValueAlert]


class DashboardCharts(BaseModel):
    donut: list[DonutSegment]
    growth: list[GrowthLinePoint]
    heatmap: list[HeatmapDay]
    emv_breakdown: list[EmvBarSegment]


class DashboardData(BaseModel):
    """Full payload for the lifetime dashboard."""

    aggregate: AggregateMetrics
    hero_cards: list[HeroCardData]
    platforms: list[PlatformMetrics]
    charts: DashboardCharts
    top_posts: list[PostMetrics]
    data_quality: DataQualityStatus


# ============== Calendar ==============

class WeekRange(BaseModel):
    """Monday-to-Sunday bounds as YYYY-MM-DD strings (SAST calendar days)."""

    week_start: str
    week_end: str


class DateRange(BaseModel):
    start: str  # YYYY-MM-DD
    end: str  # YYYY-MM-DD


class AvailableWeek(WeekRange):
    label: str
