"""Payload shapes for the week-over-week comparison."""

from typing import Literal

from pydantic import BaseModel

from schemas.metrics import AvailableWeek, Direction, MetricFormat, PostMetrics

InsightType = Literal["growth", "decline", "top_post", "anomaly", "recommendation"]
Severity = Literal["positive", "negative", "neutral", "info"]


class WeeklyHeroCard(BaseModel):
    metric: str
    key: str
    this_week: float
    last_week: float
    delta: float
    percent_change: float
    direction: Direction
    label: str
    format: MetricFormat


class SparkValue(BaseModel):
    value: float


class WeeklyPlatformRow(BaseModel):
    platform: str
    metric: str
    metric_key: str
    this_week: float
    last_week: float
    delta: float
    percent_change: float
    direction: Direction
    format: MetricFormat
    sparkline: list[SparkValue]


class WeeklyEmvBar(BaseModel):
    label: str
    views: float
    likes: float
    comments: float
    shares: float
    other: float
    total: float


class EmvComparison(BaseModel):
    this_week: WeeklyEmvBar
    last_week: WeeklyEmvBar
    delta: float
    percent_change: float
    currency_symbol: str


class WeeklyGrowthPoint(BaseModel):
    week_label: str
    week_start: str
    views: int
    impressions: int
    engagements: int
    engagement_rate: float
    emv: float


class DayEngagement(BaseModel):
    day_of_week: int  # 0 = Monday
    day_label: str
    platform: str
    engagements: int


class ContentInsight(BaseModel):
    type: InsightType
    icon: str
    title: str
    body: str
    severity: Severity


class EngagementGauge(BaseModel):
    current_rate: float
    previous_rate: float
    four_week_average: float
    industry_benchmark: float
    change_points: float


class WeeklyComparisonData(BaseModel):
    """Full payload for the weekly comparison view."""

    this_week_start: str
    this_week_end: str
    last_week_start: str
    last_week_end: str
    is_partial_week: bool
    partial_day_count: int
    hero_cards: list[WeeklyHeroCard]
    engagement_gauge: EngagementGauge
    emv_comparison: EmvComparison
    platform_table: list[WeeklyPlatformRow]
    growth_curve: list[WeeklyGrowthPoint]
    day_heatmap: list[DayEngagement]
    top_posts: list[PostMetrics]
    insights: list[ContentInsight]
    available_weeks: list[AvailableWeek]
