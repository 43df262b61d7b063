"""Payload shapes for show-level rollups."""

from pydantic import BaseModel

from schemas.metrics import DateRange, MetricFormat, PostMetrics
from services.registry import ShowConfig


class ShowSummary(BaseModel):
    show_id: str
    show_name: str
    color: str
    logo_path: str
    total_engagements: int
    total_views: int
    total_impressions: int
    total_posts: int
    emv_total: float
    engagement_rate: float
    # None means "N/A": nothing in either period
    delta_engagements: float | None
    delta_views: float | None
    delta_posts: float | None
    delta_emv: float | None


class ShowComparisonEntry(BaseModel):
    show_id: str
    show_name: str
    color: str
    engagements: int
    views: int
    impressions: int
    emv: float
    posts: int


class ShowContributionSegment(BaseModel):
    show_id: str
    show_name: str
    color: str
    value: int
    percentage: float


class ShowValue(BaseModel):
    show_id: str
    value: float


class ShowTimelinePoint(BaseModel):
    week_label: str
    week_start: str
    values: list[ShowValue]

    def value_for(self, show_id: str) -> float:
        return next((v.value for v in self.values if v.show_id == show_id), 0)


class HashtagHealthEntry(BaseModel):
    hashtag: str
    show_id: str
    show_name: str
    show_color: str
    post_count: int
    avg_engagement: int
    total_engagements: int
    top_platform: str | None


class ShowOverviewData(BaseModel):
    summaries: list[ShowSummary]
    comparison: list[ShowComparisonEntry]
    contribution: list[ShowContributionSegment]
    timeline: list[ShowTimelinePoint]
    hashtag_health: list[HashtagHealthEntry]
    date_range: DateRange
    total_attributed_posts: int
    total_unattributed_posts: int


# ============== Drill-down ==============

class ShowHeroCard(BaseModel):
    label: str
    value: float
    format: MetricFormat
    delta: float | None


class ShowPlatformBreakdown(BaseModel):
    platform: str
    engagements: int = 0
    views: int = 0
    impressions: int = 0
    emv: float = 0.0
    posts: int = 0
    color: str


class ShowEngagementBreakdown(BaseModel):
    name: str
    value: int
    color: str


class ShowTopHashtag(BaseModel):
    hashtag: str
    post_count: int
    avg_engagement: int


class ShowDrillDownData(BaseModel):
    show: ShowConfig
    hero_cards: list[ShowHeroCard]
    platform_breakdown: list[ShowPlatformBreakdown]
    engagement_breakdown: list[ShowEngagementBreakdown]
    timeline: list[ShowTimelinePoint]
    posts: list[PostMetrics]
    top_hashtags: list[ShowTopHashtag]
    date_range: DateRange
    total_posts: int
