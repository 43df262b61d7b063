"""Analytics router - lifetime dashboard, weekly comparison and live week tracker."""

import logging
from datetime import timedelta
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from schemas.current_week import CurrentWeekData
from schemas.metrics import DashboardData
from schemas.weekly import WeeklyComparisonData
from services import metrics_repository as repo
from services.current_week_processing import build_current_week_payload
from services.data_processing import build_dashboard_data
from services.registry import DashboardConfig, get_dashboard_config
from services.snapshot_archive import backfill_snapshots, load_week_snapshot
from services.week_utils import (
    Clock,
    current_week_range,
    format_date,
    get_clock,
    is_partial_week,
    parse_date,
    partial_week_days,
    previous_week,
    week_range_for,
    week_start_for,
)
from services.weekly_processing import GROWTH_CURVE_WEEKS, build_weekly_comparison

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["analytics"])

RECENT_POSTS_DAYS = 28


@router.get("/analytics", response_model=DashboardData)
async def get_analytics(
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[DashboardConfig, Depends(get_dashboard_config)],
    clock: Annotated[Clock, Depends(get_clock)],
):
    """Lifetime dashboard built from every cached daily row and post."""
    if await repo.count_daily_metrics(db) == 0:
        raise HTTPException(
            status_code=404,
            detail="No data available. Run a refresh first (POST /api/refresh).",
        )

    rows = await repo.get_daily_metrics(db)
    posts = await repo.get_posts(db)
    last_updated = await repo.get_last_refresh_time(db)
    return build_dashboard_data(rows, posts, last_updated, config, clock)


@router.get("/weekly", response_model=WeeklyComparisonData)
async def get_weekly(
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[DashboardConfig, Depends(get_dashboard_config)],
    clock: Annotated[Clock, Depends(get_clock)],
    week_start: Optional[str] = Query(None, description="Any date in the week (YYYY-MM-DD); defaults to this week"),
):
    """Selected week vs the week before it. Defaults to the current, possibly partial, week."""
    if week_start:
        try:
            parse_date(week_start)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid week_start: {week_start}")
        this_week = week_range_for(week_start_for(week_start))
    else:
        this_week = current_week_range(clock)
    last_week = previous_week(this_week.week_start)
    rates = config.emv.rates

    this_week_rows = await load_week_snapshot(db, this_week, rates, clock)
    last_week_rows = await load_week_snapshot(db, last_week, rates, clock)
    await backfill_snapshots(db, last_week.week_start, rates, clock)

    recent_weeks = await repo.get_recent_snapshots(db, this_week.week_start, GROWTH_CURVE_WEEKS)
    if this_week_rows and not any(r.week_start == this_week.week_start for r in recent_weeks):
        # In-progress weeks are never archived
        recent_weeks = this_week_rows + recent_weeks

    posts = await repo.get_posts(db, this_week.week_start, this_week.week_end)
    available_weeks = await repo.get_available_weeks(db)
    partial = is_partial_week(this_week.week_start, this_week.week_end, clock)

    return build_weekly_comparison(
        this_week_rows,
        last_week_rows,
        recent_weeks,
        posts,
        this_week,
        last_week,
        config,
        available_weeks=available_weeks,
        is_partial_week=partial,
        partial_day_count=partial_week_days(this_week.week_start, clock) if partial else 7,
    )


@router.get("/current-week", response_model=CurrentWeekData)
async def get_current_week(
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[DashboardConfig, Depends(get_dashboard_config)],
    clock: Annotated[Clock, Depends(get_clock)],
):
    """Live tracker for the week in progress. Computed on the fly, never persisted."""
    week = current_week_range(clock)
    last_week = previous_week(week.week_start)
    recent_start = format_date(parse_date(week.week_start) - timedelta(days=RECENT_POSTS_DAYS))

    return build_current_week_payload(
        await repo.get_daily_metrics_by_platform(db, week.week_start, week.week_end),
        await repo.get_daily_metrics_by_platform(db, last_week.week_start, last_week.week_end),
        await repo.get_posts(db, week.week_start, week.week_end),
        await repo.get_posts(db, last_week.week_start, last_week.week_end),
        await repo.get_posts(db, recent_start, week.week_end),
        await repo.get_weekly_snapshot(db, last_week.week_start),
        await repo.get_last_refresh_time(db),
        config,
        clock,
    )
