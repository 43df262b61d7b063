"""Payload shapes for talent advocacy rollups."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from schemas.metrics import DateRange, MetricFormat, TalentPost
from services.registry import TalentConfig

TalentAlertType = Literal["inactive", "declining", "rising_star", "no_hashtag"]
TalentAlertSeverity = Literal["warning", "info", "success"]


class TalentAdvocacyStats(BaseModel):
    total_posts: int
    active_talent: int
    avg_posts_per_talent: float
    top_platform: str | None
    top_platform_posts: int
    brand_posts: int = 0


class TalentLeaderboardEntry(BaseModel):
    talent_id: str
    name: str
    initials: str
    avatar_color: str
    rank: int = 0
    total_posts: int
    brand_posts: int = 0
    total_engagements: int
    total_views: int
    emv: float
    engagement_rate: float
    top_platform: str | None
    delta_posts: float | None
    delta_engagements: float | None


class TalentActivityWeek(BaseModel):
    week_label: str
    week_start: str
    posts: int
    engagements: int


class TalentActivityEntry(BaseModel):
    talent_id: str
    name: str
    avatar_color: str
    week_data: list[TalentActivityWeek]


class TalentShowCell(BaseModel):
    show_id: str
    show_name: str
    show_color: str
    post_count: int
    engagements: int


class TalentShowMatrixEntry(BaseModel):
    talent_id: str
    name: str
    avatar_color: str
    shows: list[TalentShowCell]


class TalentFrequencyPoint(BaseModel):
    week_label: str
    week_start: str
    posts_count: int
    active_talent: int


class TalentEngagementBarEntry(BaseModel):
    talent_id: str
    name: str
    avatar_color: str
    avg_engagement: int
    total_posts: int
    top_show: str | None
    top_show_color: str | None


class TalentAlert(BaseModel):
    type: TalentAlertType
    talent_id: str
    name: str
    message: str
    severity: TalentAlertSeverity


class TalentOverviewData(BaseModel):
    advocacy_stats: TalentAdvocacyStats
    leaderboard: list[TalentLeaderboardEntry]
    activity_grid: list[TalentActivityEntry]
    show_matrix: list[TalentShowMatrixEntry]
    frequency_chart: list[TalentFrequencyPoint]
    engagement_bars: list[TalentEngagementBarEntry]
    alerts: list[TalentAlert]
    date_range: DateRange
    total_posts: int
    total_talent: int


# ============== Drill-down ==============

class TalentAccount(BaseModel):
    platform: str
    url: str
    handle: str | None


class TalentHeroCard(BaseModel):
    label: str
    value: float
    format: MetricFormat
    delta: float | None


class TalentPlatformBreakdown(BaseModel):
    platform: str
    posts: int = 0
    engagements: int = 0
    views: int = 0
    emv: float = 0.0
    color: str


class TalentShowBreakdown(BaseModel):
    show_id: str
    show_name: str
    show_color: str
    posts: int
    engagements: int
    emv: float


class TalentTimelinePoint(BaseModel):
    week_label: str
    week_start: str
    engagements: int
    posts: int
    views: int


class TalentDrillDownData(BaseModel):
    talent: TalentConfig
    accounts: list[TalentAccount]
    hero_cards: list[TalentHeroCard]
    platform_breakdown: list[TalentPlatformBreakdown]
    show_breakdown: list[TalentShowBreakdown]
    timeline: list[TalentTimelinePoint]
    posts: list[TalentPost]
    date_range: DateRange
    total_posts: int


# ============== Manual post logging ==============

class TalentPostCreate(BaseModel):
    """A talent post logged by hand. Counts not given are taken as zero."""

    talent_id: str = Field(min_length=1)
    platform: str = Field(min_length=1)
    content: str = Field(min_length=1)
    permalink: str = ""
    created_at: datetime | None = None
    impressions: int = 0
    engagements: int | None = None
    video_views: int = 0
    reactions: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0
    clicks: int = 0
