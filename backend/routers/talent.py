"""Talent router - presenter advocacy overview, drill-downs and manual post logging."""

import logging
import uuid
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from schemas.metrics import PLATFORM_IDS, DateRange, TalentPost
from schemas.talent import TalentDrillDownData, TalentOverviewData, TalentPostCreate
from services import metrics_repository as repo
from services.registry import DashboardConfig, get_dashboard_config
from services.talent_attribution import enrich_talent_posts_with_shows
from services.talent_processing import build_manual_talent_post, build_talent_drill_down, build_talent_overview
from services.week_utils import Clock, get_clock, previous_period, resolve_date_range

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/talent", tags=["talent"])

RangeParam = Annotated[Optional[str], Query(alias="range", description="1w, 4w, 12w, ytd or all (default 4w)")]


def _date_range(preset: Optional[str], clock: Clock) -> DateRange:
    try:
        return resolve_date_range(preset, clock)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


async def _load_posts(db: AsyncSession, date_range: DateRange, config: DashboardConfig) -> list[TalentPost]:
    posts = await repo.get_talent_posts(db, date_range.start, date_range.end)
    return enrich_talent_posts_with_shows(posts, config.shows, config.brand_hashtags)


@router.get("", response_model=TalentOverviewData)
async def get_talent_overview(
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[DashboardConfig, Depends(get_dashboard_config)],
    clock: Annotated[Clock, Depends(get_clock)],
    range_preset: RangeParam = None,
):
    date_range = _date_range(range_preset, clock)
    posts = await _load_posts(db, date_range, config)
    previous_posts = await _load_posts(db, previous_period(date_range), config)
    return build_talent_overview(posts, previous_posts, date_range, config, clock)


@router.get("/posts", response_model=list[TalentPost])
async def list_talent_posts(
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[DashboardConfig, Depends(get_dashboard_config)],
    clock: Annotated[Clock, Depends(get_clock)],
    range_preset: RangeParam = None,
):
    """Talent posts in the range, newest first, tagged with their shows."""
    return await _load_posts(db, _date_range(range_preset, clock), config)


@router.post("/posts", response_model=TalentPost, status_code=status.HTTP_201_CREATED)
async def create_talent_post(
    body: TalentPostCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[DashboardConfig, Depends(get_dashboard_config)],
    clock: Annotated[Clock, Depends(get_clock)],
):
    """Log a talent post by hand (for accounts Sprout doesn't track)."""
    talent = config.talent_by_id(body.talent_id)
    if talent is None:
        raise HTTPException(status_code=404, detail="Talent not found")

    if body.platform not in PLATFORM_IDS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid platform. Must be one of: {', '.join(PLATFORM_IDS)}",
        )

    if not talent.accounts.get(body.platform):
        raise HTTPException(
            status_code=400,
            detail=f"{talent.name} does not have a {body.platform} account configured",
        )

    post = build_manual_talent_post(body, f"tp-{uuid.uuid4().hex[:16]}", config, clock)
    await repo.add_talent_post(db, post)
    return enrich_talent_posts_with_shows([post], config.shows, config.brand_hashtags)[0]


@router.get("/{talent_id}", response_model=TalentDrillDownData)
async def get_talent_detail(
    talent_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[DashboardConfig, Depends(get_dashboard_config)],
    clock: Annotated[Clock, Depends(get_clock)],
    range_preset: RangeParam = None,
):
    """Drill-down for one talent member."""
    date_range = _date_range(range_preset, clock)
    posts = await _load_posts(db, date_range, config)
    previous_posts = await _load_posts(db, previous_period(date_range), config)

    data = build_talent_drill_down(talent_id, posts, previous_posts, date_range, config)
    if data is None:
        raise HTTPException(status_code=404, detail=f"Talent not found: {talent_id}")
    return data
