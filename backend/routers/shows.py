"""Shows router - hashtag-attributed show performance."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from schemas.metrics import DateRange
from schemas.shows import ShowDrillDownData, ShowOverviewData
from services import metrics_repository as repo
from services.registry import DashboardConfig, get_dashboard_config
from services.show_processing import build_show_drill_down, build_shows_overview
from services.week_utils import Clock, get_clock, previous_period, resolve_date_range

router = APIRouter(prefix="/api/shows", tags=["shows"])

RangeParam = Annotated[Optional[str], Query(alias="range", description="1w, 4w, 12w, ytd or all (default 4w)")]


def _date_range(preset: Optional[str], clock: Clock) -> DateRange:
    try:
        return resolve_date_range(preset, clock)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=ShowOverviewData)
async def get_shows_overview(
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[DashboardConfig, Depends(get_dashboard_config)],
    clock: Annotated[Clock, Depends(get_clock)],
    range_preset: RangeParam = None,
):
    date_range = _date_range(range_preset, clock)
    previous = previous_period(date_range)
    posts = await repo.get_posts(db, date_range.start, date_range.end)
    previous_posts = await repo.get_posts(db, previous.start, previous.end)
    return build_shows_overview(posts, previous_posts, date_range, config)


@router.get("/{show_id}", response_model=ShowDrillDownData)
async def get_show_detail(
    show_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[DashboardConfig, Depends(get_dashboard_config)],
    clock: Annotated[Clock, Depends(get_clock)],
    range_preset: RangeParam = None,
):
    """Drill-down for one configured show."""
    date_range = _date_range(range_preset, clock)
    previous = previous_period(date_range)
    posts = await repo.get_posts(db, date_range.start, date_range.end)
    previous_posts = await repo.get_posts(db, previous.start, previous.end)

    data = build_show_drill_down(show_id, posts, previous_posts, date_range, config)
    if data is None:
        raise HTTPException(status_code=404, detail=f"Show not found: {show_id}")
    return data
