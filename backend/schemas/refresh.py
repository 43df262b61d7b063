"""Shapes for ingestion runs and data freshness."""

from datetime import datetime

from pydantic import BaseModel


class RefreshStatusInfo(BaseModel):
    last_refresh_at: datetime | None
    is_stale: bool
    hours_ago: float | None
    last_duration_ms: int | None


class ProfileSummary(BaseModel):
    customer_profile_id: int
    name: str
    network: str
    platform: str | None


class RefreshResult(BaseModel):
    status: str
    message: str
    profiles: list[ProfileSummary]
    daily_metrics: int = 0
    posts: int = 0
    records_updated: int = 0
    timestamp: datetime


class ArchiveResult(BaseModel):
    status: str  # "ok" or "skipped"
    message: str
    week_start: str
    rows: int = 0
