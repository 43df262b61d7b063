"""Payload shapes for the live current-week tracker."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from schemas.metrics import EmvBreakdown, MetricFormat

PaceStatus = Literal["ahead", "on_track", "behind", "significantly_behind"]
DayStatus = Literal["completed", "in_progress", "upcoming"]
VelocityStatus = Literal["outperforming", "normal", "underperforming"]
AlertType = Literal["viral", "posting_gap", "engagement_drop", "milestone"]
AlertSeverity = Literal["positive", "negative", "neutral", "info"]


class LiveStatusData(BaseModel):
    week_start: str
    week_end: str
    current_day: int  # 1 = Monday
    hours_into_week: float
    last_refreshed: datetime | None
    day_statuses: list[DayStatus]


class PaceMetricCard(BaseModel):
    label: str
    key: str
    current_total: float
    projected_total: float
    last_week_final: float
    pace_status: PaceStatus
    pace_percentage: float
    format: MetricFormat


class HourlyDataPoint(BaseModel):
    hour_offset: int  # 0-167 since Monday 00:00
    day_label: str
    hour_label: str
    engagements: int = 0
    views: int = 0
    impressions: int = 0
    emv: float = 0.0
    posts_count: int = 0
    # None past the current hour, so charts stop the line there
    cumulative_engagements: int | None = None
    cumulative_views: int | None = None
    cumulative_impressions: int | None = None
    cumulative_emv: float | None = None
    last_week_cumulative_engagements: int = 0
    last_week_cumulative_views: int = 0
    last_week_cumulative_impressions: int = 0
    last_week_cumulative_emv: float = 0.0


class DayBreakdown(BaseModel):
    day_index: int  # 0 = Monday
    day_label: str
    date: str
    status: DayStatus
    engagements: int
    views: int
    impressions: int
    emv: float
    posts_count: int
    last_week_engagements: int
    last_week_views: int
    delta_engagements: int
    delta_views: int
    percent_change_engagements: float
    percent_change_views: float


class PlatformRaceEntry(BaseModel):
    platform: str
    engagements: int
    views: int
    impressions: int
    posts_count: int
    emv: float
    color: str


class LivePostEntry(BaseModel):
    id: str
    platform: str
    created_at: datetime
    content: str
    permalink: str
    engagements: int
    views: int
    impressions: int
    emv: float
    velocity: VelocityStatus
    velocity_multiplier: float


class EmvCounterData(BaseModel):
    current_total: float
    projected_total: float
    last_week_final: float
    progress_percentage: float
    breakdown: EmvBreakdown
    currency_symbol: str


class TrackerAlert(BaseModel):
    id: str
    type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    timestamp: datetime
    platform: str | None = None


class CurrentWeekData(BaseModel):
    """Full payload for the live tracker."""

    live_status: LiveStatusData
    pace_cards: list[PaceMetricCard]
    hourly_timeline: list[HourlyDataPoint]
    day_breakdown: list[DayBreakdown]
    platform_race: list[PlatformRaceEntry]
    post_log: list[LivePostEntry]
    emv_counter: EmvCounterData
    alerts: list[TrackerAlert]
